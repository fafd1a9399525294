"""Summarization helpers with pluggable LLM backends."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

import requests

from .types import SummaryResult

logger = logging.getLogger(__name__)

OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_ENDPOINT = "https://api.anthropic.com/v1/messages"
GEMINI_ENDPOINT_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
ANTHROPIC_VERSION = "2023-06-01"

DEFAULT_LLM_PROVIDER = "openai"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_ANTHROPIC_MODEL = "claude-3-haiku-20240307"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

OPENAI_MAX_TOKENS = 4096
ANTHROPIC_MAX_TOKENS = 4096
GEMINI_MAX_TOKENS = 8192
MAX_OUTPUT_TOKENS = 150
TEMPERATURE = 0.3
CHARS_PER_TOKEN = 4
ELLIPSIS = "..."

FAILURE_MESSAGE = "Summary generation failed, check network and API key"

SYSTEM_PROMPT_TEXT = (
    "You are a helpful assistant that summarizes text in exactly 3 lines, focusing on key points."
)
USER_PROMPT_PREFIX = "Summarize the following text in exactly 3 lines, focusing on key points:\n\n"

SAMPLE_TEXT = (
    "This is a test text for LLM summarization. It contains multiple sentences to test the "
    "summarization capabilities. The summary should be generated in exactly 3 lines."
)


class SummaryError(Exception):
    """Raised when a summarization provider cannot produce a summary."""


def truncate_text(text: str, max_tokens: int) -> str:
    """Trim ``text`` to roughly ``max_tokens`` tokens at 4 characters each."""
    max_chars = max(max_tokens * CHARS_PER_TOKEN, 0)
    if len(text) <= max_chars:
        return text
    if max_chars <= len(ELLIPSIS):
        return ELLIPSIS[:max_chars]
    return text[: max_chars - len(ELLIPSIS)] + ELLIPSIS


def _http_timeout() -> float:
    try:
        return float(os.environ.get("CONTEXT_CAPTURE_HTTP_TIMEOUT", "30"))
    except ValueError:
        return 30.0


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return "Unknown error"


def _checked_json(response: requests.Response, provider: str) -> Dict[str, Any]:
    if not response.ok:
        raise SummaryError(
            f"{provider} API request failed: {response.status_code} - {_error_message(response)}"
        )
    body: Dict[str, Any] = response.json() or {}
    error = body.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else error
        raise SummaryError(f"{provider} API error: {message or 'Unknown error'}")
    return body


class Summarizer(Protocol):
    provider_id: str

    def summarize(self, text: str) -> str:
        ...


class OpenAISummarizer:
    provider_id = "openai"

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None) -> None:
        self._api_key = api_key
        self._model = os.environ.get("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)
        self._session = session or requests.Session()

    def summarize(self, text: str) -> str:
        if not self._api_key:
            raise SummaryError("OpenAI API key not configured")

        truncated = truncate_text(text, OPENAI_MAX_TOKENS * 3)
        response = self._session.post(
            OPENAI_ENDPOINT,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={
                "model": self._model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT_TEXT},
                    {"role": "user", "content": USER_PROMPT_PREFIX + truncated},
                ],
                "max_tokens": MAX_OUTPUT_TOKENS,
                "temperature": TEMPERATURE,
            },
            timeout=_http_timeout(),
        )
        body = _checked_json(response, "OpenAI")
        choices: List[Dict[str, Any]] = body.get("choices") or []
        if not choices:
            raise SummaryError("No response from OpenAI")
        message = (choices[0] or {}).get("message") or {}
        return str(message.get("content") or "").strip()


class AnthropicSummarizer:
    provider_id = "anthropic"

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None) -> None:
        self._api_key = api_key
        self._model = os.environ.get("ANTHROPIC_MODEL", DEFAULT_ANTHROPIC_MODEL)
        self._session = session or requests.Session()

    def summarize(self, text: str) -> str:
        if not self._api_key:
            raise SummaryError("Anthropic API key not configured")

        truncated = truncate_text(text, ANTHROPIC_MAX_TOKENS * 3)
        response = self._session.post(
            ANTHROPIC_ENDPOINT,
            headers={"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION},
            json={
                "model": self._model,
                "max_tokens": MAX_OUTPUT_TOKENS,
                "messages": [{"role": "user", "content": USER_PROMPT_PREFIX + truncated}],
            },
            timeout=_http_timeout(),
        )
        body = _checked_json(response, "Anthropic")
        content: List[Dict[str, Any]] = body.get("content") or []
        if not content:
            raise SummaryError("No response from Anthropic")
        return str((content[0] or {}).get("text") or "").strip()


class GeminiSummarizer:
    provider_id = "gemini"

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None) -> None:
        self._api_key = api_key
        self._model = os.environ.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
        self._session = session or requests.Session()

    def summarize(self, text: str) -> str:
        if not self._api_key:
            raise SummaryError("Gemini API key not configured")

        truncated = truncate_text(text, GEMINI_MAX_TOKENS * 3)
        response = self._session.post(
            GEMINI_ENDPOINT_TEMPLATE.format(model=self._model),
            params={"key": self._api_key},
            json={
                "contents": [
                    {
                        "role": "user",
                        "parts": [{"text": USER_PROMPT_PREFIX + truncated}],
                    }
                ],
                "generationConfig": {
                    "maxOutputTokens": MAX_OUTPUT_TOKENS,
                    "temperature": TEMPERATURE,
                },
            },
            timeout=_http_timeout(),
        )
        body = _checked_json(response, "Gemini")
        candidates: List[Dict[str, Any]] = body.get("candidates") or []
        if not candidates:
            raise SummaryError("No response from Gemini")
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        if not parts:
            return ""
        return str((parts[0] or {}).get("text") or "").strip()


SummarizerFactory = Callable[[Optional[str]], Summarizer]

LLM_PROVIDERS: Dict[str, SummarizerFactory] = {
    "openai": lambda key: OpenAISummarizer(key),
    "anthropic": lambda key: AnthropicSummarizer(key),
    "gemini": lambda key: GeminiSummarizer(key),
}


class LLMService:
    """Routes ``generate_summary`` to the active summarizer."""

    def __init__(self, providers: Optional[Mapping[str, SummarizerFactory]] = None) -> None:
        self._factories: Dict[str, SummarizerFactory] = dict(providers or LLM_PROVIDERS)
        self._service = DEFAULT_LLM_PROVIDER
        self._summarizer: Summarizer = self._factories[self._service](None)

    @property
    def service(self) -> str:
        return self._service

    def configure(self, service: str, api_key: Optional[str]) -> None:
        if service not in self._factories:
            logger.warning("Unknown LLM provider '%s'; defaulting to %s", service, DEFAULT_LLM_PROVIDER)
            service = DEFAULT_LLM_PROVIDER
        self._service = service
        self._summarizer = self._factories[service](api_key)
        logger.info("LLM provider set to %s (api key configured: %s)", service, bool(api_key))

    def generate_summary(self, text: str) -> SummaryResult:
        summarizer = self._summarizer
        logger.debug("Generating summary with %s for %s chars", summarizer.provider_id, len(text))
        try:
            summary = summarizer.summarize(text)
        except Exception as exc:  # noqa: BLE001 - callers only ever see the generic message
            logger.error("Summary generation with %s failed: %s", summarizer.provider_id, exc)
            return {"summary": "", "success": False, "error": FAILURE_MESSAGE}
        return {"summary": summary, "success": True}

    def test_llm(self) -> bool:
        result = self.generate_summary(SAMPLE_TEXT)
        return bool(result["success"]) and len(result["summary"].split("\n")) <= 3


__all__ = [
    "LLMService",
    "LLM_PROVIDERS",
    "OpenAISummarizer",
    "AnthropicSummarizer",
    "GeminiSummarizer",
    "Summarizer",
    "SummaryError",
    "truncate_text",
    "FAILURE_MESSAGE",
]
