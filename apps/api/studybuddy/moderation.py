"""
Keyword-based content moderation for study chats.

Classifies a student's message as appropriate or not for an educational
context and explains why. Matching is plain substring containment over fixed
word lists: no tokenizer, no stemming, no model. This keeps the verdict
deterministic and instant at the cost of precision ("skill" contains "kill").
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

# Order matters: the first blocked term found is the one reported.
BLOCKED_TERMS: tuple[str, ...] = (
    # Harmful or mature content
    "violence", "violent", "kill", "death", "drug", "drugs", "alcohol", "beer", "wine",
    "gambling", "casino", "bet", "suicide", "harm", "hurt", "weapon", "gun", "knife",
    "hate", "racist", "discrimination", "bully", "bullying", "sexual", "inappropriate",
    "naked", "nude", "porn", "adult", "mature", "dating", "romance", "boyfriend", "girlfriend",
    # Social media and non-study content
    "instagram", "tiktok", "snapchat", "facebook", "youtube", "gaming", "game", "party",
    "skip school", "skip class", "cheat", "cheating", "copy homework", "answers key",
    # Mild profanity
    "stupid", "dumb", "idiot", "shut up", "hate you",
    # Money / commercial
    "buy", "sell", "money", "credit card", "purchase", "shopping", "expensive",
)

STUDY_TERMS: tuple[str, ...] = (
    "homework", "study", "learn", "school", "class", "teacher", "student", "education",
    "math", "science", "history", "english", "literature", "reading", "writing",
    "algebra", "geometry", "biology", "chemistry", "physics", "geography",
    "assignment", "project", "test", "exam", "quiz", "practice", "exercise",
    "help", "explain", "understand", "question", "answer", "solve", "calculate",
    "research", "book", "chapter", "lesson", "topic", "subject", "course",
)

EDUCATIONAL_INTENT_MARKERS: tuple[str, ...] = (
    "?", "how", "what", "why", "when", "where", "explain", "help",
)

# Messages with more words than this need a study term or a question marker.
OFF_TOPIC_WORD_LIMIT = 10

REASON_APPROPRIATE = "Content appears appropriate"
REASON_UNRELATED = "Message not related to studying or education"
REASON_OFF_TOPIC = "Message appears off-topic: no educational intent detected"


@dataclass(frozen=True)
class ModerationRules:
    """Immutable word lists the filter works from."""

    blocked_terms: tuple[str, ...] = BLOCKED_TERMS
    study_terms: tuple[str, ...] = STUDY_TERMS
    intent_markers: tuple[str, ...] = EDUCATIONAL_INTENT_MARKERS
    word_limit: int = OFF_TOPIC_WORD_LIMIT


@dataclass(frozen=True)
class ModerationVerdict:
    flagged: bool
    reason: str


def _first_match(text: str, terms: Iterable[str]) -> str | None:
    return next((term for term in terms if term in text), None)


class ModerationFilter:
    """
    Single-pass classifier over a set of ModerationRules.

    Holds no mutable state, so one instance can be shared freely.
    """

    def __init__(self, rules: ModerationRules | None = None) -> None:
        self.rules = rules or ModerationRules()

    def classify(self, message: str) -> ModerationVerdict:
        """
        Return the verdict for a message. Never raises.

        Blocked terms always win. Otherwise a long message (more than
        `word_limit` space-separated tokens) with no study term is flagged
        unless it carries an educational-intent marker such as "?" or "how".
        """
        text = (message or "").lower()

        blocked = _first_match(text, self.rules.blocked_terms)
        if blocked is not None:
            return ModerationVerdict(flagged=True, reason=f'Inappropriate content detected: "{blocked}"')

        has_study_content = _first_match(text, self.rules.study_terms) is not None
        if has_study_content:
            return ModerationVerdict(flagged=False, reason=REASON_APPROPRIATE)

        # Split on single spaces: repeated spaces yield empty tokens, which still count.
        word_count = len(text.split(" "))
        if word_count > self.rules.word_limit and _first_match(text, self.rules.intent_markers) is None:
            return ModerationVerdict(flagged=True, reason=REASON_OFF_TOPIC)

        return ModerationVerdict(flagged=False, reason=REASON_UNRELATED)


def _clean_terms(values: object) -> tuple[str, ...]:
    """Lower-case, strip and de-duplicate terms, keeping their first-seen order."""
    if not isinstance(values, list):
        return ()
    seen: dict[str, None] = {}
    for value in values:
        if not isinstance(value, str):
            continue
        term = value.strip().lower()
        if term:
            seen.setdefault(term, None)
    return tuple(seen)


def load_rules(path: str | Path) -> ModerationRules:
    """
    Load ModerationRules from a JSON file.

    Recognised keys: blocked_terms, study_terms, intent_markers (lists of
    strings) and word_limit (int). Missing or empty keys keep the built-in
    defaults; an unreadable or malformed file yields the defaults entirely.
    """
    defaults = ModerationRules()
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        logger.warning("Could not read moderation rules from %s; using defaults", path)
        return defaults
    if not isinstance(data, dict):
        logger.warning("Moderation rules file %s is not a JSON object; using defaults", path)
        return defaults

    word_limit = data.get("word_limit")
    if not isinstance(word_limit, int) or isinstance(word_limit, bool) or word_limit < 0:
        word_limit = defaults.word_limit

    return ModerationRules(
        blocked_terms=_clean_terms(data.get("blocked_terms")) or defaults.blocked_terms,
        study_terms=_clean_terms(data.get("study_terms")) or defaults.study_terms,
        intent_markers=_clean_terms(data.get("intent_markers")) or defaults.intent_markers,
        word_limit=word_limit,
    )


_DEFAULT_FILTER = ModerationFilter()


def classify(message: str) -> ModerationVerdict:
    """Classify a message with the built-in word lists."""
    return _DEFAULT_FILTER.classify(message)
