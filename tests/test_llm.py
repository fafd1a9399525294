"""
Unit tests for context_capture.llm.
"""
from unittest.mock import patch

import pytest
import requests

from context_capture.llm import (
    ANTHROPIC_ENDPOINT,
    ANTHROPIC_VERSION,
    FAILURE_MESSAGE,
    OPENAI_ENDPOINT,
    LLMService,
    truncate_text,
)

FAILED = {"success": False, "summary": "", "error": FAILURE_MESSAGE}
SUMMARY = "First key point.\nSecond key point.\nThird key point."


def service(provider: str, key: str = "test-key") -> LLMService:
    svc = LLMService()
    svc.configure(provider, key)
    return svc


class TestTruncateText:
    """Tests for truncate_text."""

    def test_short_text_unchanged(self):
        assert truncate_text("Short text", 1000) == "Short text"

    def test_boundary_is_identity(self):
        text = "A" * 4000
        assert truncate_text(text, 1000) is text

    def test_long_text_truncated(self):
        result = truncate_text("A" * 10000, 1000)

        assert len(result) == 4000
        assert result.endswith("...")

    def test_edge_cases(self):
        assert truncate_text("", 1000) == ""
        assert truncate_text("Test", 1) == "Test"
        assert truncate_text("Short", 2) == "Short"

    @pytest.mark.parametrize("max_tokens,expected", [(0, ""), (-2, ""), (1, "a...")])
    def test_tiny_budget_never_exceeds_limit(self, max_tokens, expected):
        result = truncate_text("abcdefgh", max_tokens)

        assert result == expected
        assert len(result) <= max(max_tokens * 4, 0)


class TestOpenAI:
    """Tests for the OpenAI summarizer."""

    def test_success(self, http_response):
        body = {"choices": [{"message": {"content": f"  {SUMMARY}\n"}}]}
        with patch.object(requests.Session, "post", return_value=http_response(200, body)) as post:
            result = service("openai").generate_summary("Some long article text")

        assert result == {"summary": SUMMARY, "success": True}
        args, kwargs = post.call_args
        assert args[0] == OPENAI_ENDPOINT
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        messages = kwargs["json"]["messages"]
        assert "exactly 3 lines" in messages[-1]["content"]
        assert messages[-1]["content"].endswith("Some long article text")
        assert kwargs["json"]["max_tokens"] == 150

    @pytest.mark.parametrize("status", [401, 429, 500])
    def test_http_failure_is_normalized(self, http_response, status):
        body = {"error": {"message": "Incorrect API key provided"}}
        with patch.object(requests.Session, "post", return_value=http_response(status, body)):
            result = service("openai").generate_summary("text")

        assert result == FAILED

    def test_embedded_error(self, http_response):
        body = {"error": {"message": "model overloaded"}}
        with patch.object(requests.Session, "post", return_value=http_response(200, body)):
            result = service("openai").generate_summary("text")

        assert result == FAILED

    def test_empty_choices(self, http_response):
        with patch.object(requests.Session, "post", return_value=http_response(200, {"choices": []})):
            result = service("openai").generate_summary("text")

        assert result == FAILED

    def test_missing_key(self):
        svc = LLMService()
        with patch.object(requests.Session, "post") as post:
            result = svc.generate_summary("text")

        assert result == FAILED
        post.assert_not_called()

    def test_network_error(self):
        with patch.object(requests.Session, "post", side_effect=requests.Timeout("slow")):
            result = service("openai").generate_summary("text")

        assert result == FAILED

    def test_long_input_is_truncated(self, http_response):
        body = {"choices": [{"message": {"content": SUMMARY}}]}
        with patch.object(requests.Session, "post", return_value=http_response(200, body)) as post:
            service("openai").generate_summary("B" * 60000)

        content = post.call_args[1]["json"]["messages"][-1]["content"]
        assert content.endswith("...")
        assert content.count("B") == 4096 * 3 * 4 - 3


class TestAnthropic:
    """Tests for the Anthropic summarizer."""

    def test_success(self, http_response):
        body = {"content": [{"type": "text", "text": SUMMARY}]}
        with patch.object(requests.Session, "post", return_value=http_response(200, body)) as post:
            result = service("anthropic").generate_summary("text")

        assert result == {"summary": SUMMARY, "success": True}
        args, kwargs = post.call_args
        assert args[0] == ANTHROPIC_ENDPOINT
        assert kwargs["headers"] == {"x-api-key": "test-key", "anthropic-version": ANTHROPIC_VERSION}

    def test_empty_content(self, http_response):
        with patch.object(requests.Session, "post", return_value=http_response(200, {"content": []})):
            result = service("anthropic").generate_summary("text")

        assert result == FAILED


class TestGemini:
    """Tests for the Gemini summarizer."""

    def test_success(self, http_response):
        body = {"candidates": [{"content": {"parts": [{"text": SUMMARY}]}}]}
        with patch.object(requests.Session, "post", return_value=http_response(200, body)) as post:
            result = service("gemini").generate_summary("text")

        assert result == {"summary": SUMMARY, "success": True}
        args, kwargs = post.call_args
        assert ":generateContent" in args[0]
        assert kwargs["params"] == {"key": "test-key"}
        assert "headers" not in kwargs
        assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == 150

    def test_no_candidates(self, http_response):
        with patch.object(requests.Session, "post", return_value=http_response(200, {"candidates": []})):
            result = service("gemini").generate_summary("text")

        assert result == FAILED


class TestProviderSwitching:
    """Switching provider ids routes to a fresh summarizer."""

    def test_switch_between_calls(self, http_response):
        svc = service("openai")
        anthropic_body = {"content": [{"text": SUMMARY}]}
        with patch.object(requests.Session, "post", return_value=http_response(200, anthropic_body)) as post:
            svc.configure("anthropic", "anthropic-key")
            result = svc.generate_summary("text")

        assert post.call_args[0][0] == ANTHROPIC_ENDPOINT
        assert result["summary"] == SUMMARY

    def test_self_test_accepts_three_lines(self, stub_summarizer):
        svc = LLMService(providers={"openai": lambda key: stub_summarizer})

        assert svc.test_llm() is True

    def test_self_test_rejects_long_summary(self, stub_summarizer):
        stub_summarizer.summary = "1\n2\n3\n4"
        svc = LLMService(providers={"openai": lambda key: stub_summarizer})

        assert svc.test_llm() is False
