from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx

from studybuddy.settings import settings
from studybuddy.subjects import build_system_prompt, local_study_reply

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LlmResult:
    content: str
    model: str
    stub: bool
    fallback: bool = False


class EmptyCompletionError(ValueError):
    """The backend answered but returned no usable content."""


def _normalize_base_url(base_url: str) -> str:
    base_url = (base_url or "").strip()
    if not base_url:
        return ""
    # Allow users to provide either http://host:port or http://host:port/v1
    if base_url.endswith("/"):
        base_url = base_url[:-1]
    if not base_url.endswith("/v1"):
        base_url = base_url + "/v1"
    return base_url


def _last_user_content(history: list[dict[str, str]]) -> str:
    for m in reversed(history):
        if m.get("role") == "user":
            return m.get("content") or ""
    return ""


async def chat_completion(messages: list[dict[str, str]], max_tokens: int, temperature: float) -> LlmResult:
    """
    Call an OpenAI-compatible Chat Completions endpoint.

    Raises httpx.HTTPError on transport or status failures and
    EmptyCompletionError when the response carries no content.
    """
    base_url = _normalize_base_url(settings.openai_base_url)
    model = settings.openai_model

    url = urljoin(base_url + "/", "chat/completions")
    headers: dict[str, str] = {"Content-Type": "application/json"}
    if settings.openai_api_key:
        headers["Authorization"] = f"Bearer {settings.openai_api_key}"

    payload = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "stream": False,
    }

    async with httpx.AsyncClient(timeout=settings.openai_timeout_seconds) as client:
        resp = await client.post(url, json=payload, headers=headers)
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as exc:
            raise EmptyCompletionError("Response body is not JSON") from exc

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise EmptyCompletionError("Response has no choices") from exc

    if content is not None and not isinstance(content, str):
        raise EmptyCompletionError(f"Model returned non-text content: {type(content).__name__}")
    content = (content or "").strip()
    if not content:
        raise EmptyCompletionError("Model returned empty content")

    return LlmResult(content=content, model=model, stub=False)


async def generate_reply(
    student_name: str,
    history: list[dict[str, str]],
    max_tokens: int = 400,
    temperature: float = 0.7,
) -> LlmResult:
    """
    Produce the tutor's reply to the latest user message in `history`.

    Never raises: with no backend configured the local study reply is used
    (stub mode); on any backend failure the same local reply stands in.
    """
    fallback_text = local_study_reply(_last_user_content(history))

    if not _normalize_base_url(settings.openai_base_url):
        return LlmResult(content=fallback_text, model="local", stub=True)

    messages = [{"role": "system", "content": build_system_prompt(student_name)}, *history]
    try:
        return await chat_completion(messages, max_tokens=max_tokens, temperature=temperature)
    except (httpx.HTTPError, EmptyCompletionError) as exc:
        logger.warning("Completion backend failed, using local reply: %s", exc)
        return LlmResult(content=fallback_text, model="local", stub=False, fallback=True)
