import json

from studybuddy.moderation import (
    BLOCKED_TERMS,
    REASON_APPROPRIATE,
    REASON_OFF_TOPIC,
    REASON_UNRELATED,
    ModerationFilter,
    ModerationRules,
    ModerationVerdict,
    classify,
    load_rules,
)


def test_blocked_terms_flag_message():
    verdict = classify("I love violence and drugs")
    assert verdict.flagged is True
    assert verdict.reason == 'Inappropriate content detected: "violence"'


def test_every_blocked_term_is_flagged_case_insensitively():
    for term in BLOCKED_TERMS:
        verdict = classify(f"Tell me about {term.upper()} please")
        assert verdict.flagged is True, term


def test_first_blocked_term_in_list_order_wins():
    # "drug" comes before "violence" in the message but after it in the list.
    verdict = classify("drug violence")
    assert verdict.reason == 'Inappropriate content detected: "violence"'


def test_blocked_term_beats_study_terms():
    verdict = classify("Explain the history of gambling")
    assert verdict.flagged is True
    assert "gambling" in verdict.reason


def test_substring_matching_is_not_word_bounded():
    assert classify("I want to improve my skill").reason == 'Inappropriate content detected: "kill"'
    assert classify("alphabet").flagged is True


def test_long_study_message_is_allowed():
    verdict = classify("Can you help me understand this algebra homework problem please explain it")
    assert verdict == ModerationVerdict(flagged=False, reason=REASON_APPROPRIATE)


def test_long_off_topic_message_without_intent_is_flagged():
    verdict = classify("The weather today is nice and I went outside to play with my friends for a while")
    assert verdict == ModerationVerdict(flagged=True, reason=REASON_OFF_TOPIC)


def test_long_off_topic_message_with_question_marker_is_allowed():
    verdict = classify("i saw a really cool bird outside my window this morning and wondered why it sings")
    assert verdict == ModerationVerdict(flagged=False, reason=REASON_UNRELATED)


def test_empty_message_is_allowed_but_unrelated():
    verdict = classify("")
    assert verdict.flagged is False
    assert verdict.reason == "Message not related to studying or education"


def test_short_question_is_allowed():
    assert classify("What is photosynthesis?").flagged is False


def test_short_messages_are_never_flagged_without_blocked_terms():
    assert classify("I like pizza") == ModerationVerdict(flagged=False, reason=REASON_UNRELATED)
    assert classify("one two three four five six seven eight nine ten").flagged is False


def test_word_limit_boundary():
    assert classify("one two three four five six seven eight nine ten eleven").flagged is True


def test_repeated_spaces_count_as_tokens():
    # "ok" followed by 11 spaces splits into 12 tokens.
    assert classify("ok" + " " * 11) == ModerationVerdict(flagged=True, reason=REASON_OFF_TOPIC)
    assert classify("ok" + " " * 9).flagged is False


def test_classify_is_idempotent():
    message = "The weather today is nice and I went outside to play with my friends for a while"
    assert classify(message) == classify(message)


def test_custom_rules_are_injected():
    content_filter = ModerationFilter(ModerationRules(blocked_terms=("pizza",)))
    assert content_filter.classify("I like Pizza").reason == 'Inappropriate content detected: "pizza"'
    assert content_filter.classify("I love violence").flagged is False


def test_load_rules_cleans_terms_and_keeps_defaults(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(
        json.dumps({"blocked_terms": ["  Pizza ", "pizza", 3, ""], "word_limit": 3}),
        encoding="utf-8",
    )

    rules = load_rules(path)

    defaults = ModerationRules()
    assert rules.blocked_terms == ("pizza",)
    assert rules.study_terms == defaults.study_terms
    assert rules.intent_markers == defaults.intent_markers
    assert rules.word_limit == 3


def test_load_rules_falls_back_on_bad_files(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    listing = tmp_path / "list.json"
    listing.write_text("[]", encoding="utf-8")

    assert load_rules(broken) == ModerationRules()
    assert load_rules(listing) == ModerationRules()
    assert load_rules(tmp_path / "missing.json") == ModerationRules()
