"""Tests for the Claude provider with the Anthropic client on a mocked transport."""

import anthropic
import httpx
import pytest

from conftest import UPTIME_SCHEMA
from osquery_nli.core.errors import (
    CannotTranslateError,
    InvalidAPIKeyError,
    NetworkError,
    RateLimitedError,
)
from osquery_nli.llm.prompts import PromptRenderer
from osquery_nli.llm.providers.anthropic import AnthropicProvider
from osquery_nli.llm.retry import RetryPolicy


def message(text: str) -> dict:
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-20250514",
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 140, "output_tokens": 9},
    }


def error_body(error_type: str, text: str) -> dict:
    return {"type": "error", "error": {"type": error_type, "message": text}}


def make_provider(renderer: PromptRenderer, response: httpx.Response) -> AnthropicProvider:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return response

    client = anthropic.AsyncAnthropic(
        api_key="sk-ant-test",
        base_url="https://anthropic.test",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    provider = AnthropicProvider(
        api_key="sk-ant-test",
        model="claude-sonnet-4-20250514",
        renderer=renderer,
        retry_policy=RetryPolicy(max_retries=0),
        client=client,
    )
    provider.requests = requests  # type: ignore[attr-defined]
    return provider


class TestAnthropicProvider:
    async def test_translate(self, renderer: PromptRenderer):
        provider = make_provider(renderer, httpx.Response(200, json=message("SELECT * FROM uptime;")))

        result = await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)

        assert result.sql == "SELECT * FROM uptime;"
        assert result.token_usage is not None
        assert result.token_usage.total_tokens == 149
        request = provider.requests[0]  # type: ignore[attr-defined]
        assert request.url.path == "/v1/messages"
        assert request.headers["x-api-key"] == "sk-ant-test"

    async def test_invalid_key(self, renderer: PromptRenderer):
        response = httpx.Response(401, json=error_body("authentication_error", "invalid x-api-key"))
        provider = make_provider(renderer, response)
        with pytest.raises(InvalidAPIKeyError):
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)

    async def test_rate_limited(self, renderer: PromptRenderer):
        response = httpx.Response(
            429,
            headers={"retry-after": "20"},
            json=error_body("rate_limit_error", "Number of requests has exceeded your rate limit"),
        )
        provider = make_provider(renderer, response)
        with pytest.raises(RateLimitedError) as exc_info:
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)
        assert exc_info.value.retry_after == 20.0

    async def test_bad_request_message(self, renderer: PromptRenderer):
        response = httpx.Response(400, json=error_body("invalid_request_error", "prompt is too long"))
        provider = make_provider(renderer, response)
        with pytest.raises(CannotTranslateError) as exc_info:
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)
        assert exc_info.value.user_message == "prompt is too long"

    async def test_server_error(self, renderer: PromptRenderer):
        response = httpx.Response(500, json=error_body("api_error", "Internal server error"))
        provider = make_provider(renderer, response)
        with pytest.raises(NetworkError) as exc_info:
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)
        assert exc_info.value.user_message == "Network error: Server error: 500"
