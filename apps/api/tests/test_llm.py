import asyncio
import json

import httpx
import pytest

from studybuddy import llm
from studybuddy.settings import settings
from studybuddy.subjects import DEFAULT_REPLY, local_study_reply

REAL_ASYNC_CLIENT = httpx.AsyncClient

HISTORY = [{"role": "user", "content": "Can you help with my algebra homework?"}]


@pytest.fixture(autouse=True)
def backend_settings(monkeypatch):
    monkeypatch.setattr(settings, "openai_base_url", "http://llm.test")
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(settings, "openai_model", "test-model")


def _use_transport(monkeypatch, handler):
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        llm.httpx,
        "AsyncClient",
        lambda **kwargs: REAL_ASYNC_CLIENT(transport=transport, **kwargs),
    )


def _reply(history=HISTORY):
    return asyncio.run(llm.generate_reply("Sam", history))


def test_normalize_base_url():
    assert llm._normalize_base_url("") == ""
    assert llm._normalize_base_url("http://localhost:1234") == "http://localhost:1234/v1"
    assert llm._normalize_base_url("http://localhost:1234/v1/") == "http://localhost:1234/v1"


def test_stub_mode_uses_local_reply(monkeypatch):
    monkeypatch.setattr(settings, "openai_base_url", "")

    result = _reply()

    assert result.stub is True
    assert result.fallback is False
    assert result.content == local_study_reply(HISTORY[-1]["content"])


def test_successful_completion(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Let's factor it together.  "}}]})

    _use_transport(monkeypatch, handler)

    result = _reply()

    assert result.content == "Let's factor it together."
    assert result.model == "test-model"
    assert result.stub is False
    assert result.fallback is False
    assert seen["url"] == "http://llm.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    messages = seen["body"]["messages"]
    assert messages[0]["role"] == "system"
    assert "Sam" in messages[0]["content"]
    assert messages[1:] == HISTORY


def test_server_error_falls_back_to_local_reply(monkeypatch):
    _use_transport(monkeypatch, lambda request: httpx.Response(500, json={"error": "down"}))

    result = _reply()

    assert result.fallback is True
    assert result.content == local_study_reply("algebra")


def test_network_failure_falls_back_to_local_reply(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    _use_transport(monkeypatch, handler)

    result = _reply([{"role": "user", "content": "Tell me something"}])

    assert result.fallback is True
    assert result.content == DEFAULT_REPLY


@pytest.mark.parametrize(
    "body",
    [
        {"choices": [{"message": {"content": "   "}}]},
        {"choices": []},
        {"unexpected": True},
        {"choices": [{"message": {"content": 42}}]},
        {"choices": [{"message": {"content": ["a", "b"]}}]},
        {"choices": [{"message": {"content": None}}]},
    ],
)
def test_empty_or_malformed_response_falls_back(monkeypatch, body):
    _use_transport(monkeypatch, lambda request: httpx.Response(200, json=body))

    result = _reply()

    assert result.fallback is True
    assert result.content == local_study_reply("algebra")


def test_non_json_response_falls_back(monkeypatch):
    _use_transport(monkeypatch, lambda request: httpx.Response(200, text="<html>oops</html>"))

    assert _reply().fallback is True


def test_local_study_reply_picks_first_matching_subject():
    assert local_study_reply("study for my MATH test") == local_study_reply("geometry")
    assert "study tips" in local_study_reply("homework plan")
    assert "Don't worry" in local_study_reply("I'm so confused")
    assert local_study_reply("") == DEFAULT_REPLY
