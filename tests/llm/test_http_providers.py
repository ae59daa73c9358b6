"""Tests for the Gemini and OpenAI providers against a mocked HTTP transport."""

import json
from collections.abc import Callable

import httpx
import pytest

from conftest import UPTIME_SCHEMA
from osquery_nli.core.errors import (
    CannotTranslateError,
    InvalidAPIKeyError,
    InvalidResponseError,
    NetworkError,
    RateLimitedError,
)
from osquery_nli.llm.prompts import PromptRenderer
from osquery_nli.llm.providers.gemini import GeminiProvider, parse_generate_content
from osquery_nli.llm.providers.openai import OpenAIProvider, parse_chat_completion
from osquery_nli.llm.retry import RetryPolicy

Handler = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response | Exception):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def body(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_openai(renderer: PromptRenderer, handler: Handler) -> OpenAIProvider:
    return OpenAIProvider(
        api_key="sk-test",
        model="gpt-4o-mini",
        renderer=renderer,
        retry_policy=RetryPolicy(max_retries=0),
        base_url="https://openai.test/v1",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def make_gemini(renderer: PromptRenderer, handler: Handler) -> GeminiProvider:
    return GeminiProvider(
        api_key="gm-test",
        model="gemini-2.0-flash-lite",
        renderer=renderer,
        retry_policy=RetryPolicy(max_retries=0),
        base_url="https://gemini.test/v1beta",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def chat_completion(content: str) -> dict:
    return {
        "model": "gpt-4o-mini-2024-07-18",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 120, "completion_tokens": 8, "total_tokens": 128},
    }


def generate_content(text: str) -> dict:
    return {
        "candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}],
        "usageMetadata": {"promptTokenCount": 90, "candidatesTokenCount": 6},
        "modelVersion": "gemini-2.0-flash-lite-001",
    }


class TestOpenAIProvider:
    async def test_translate(self, renderer: PromptRenderer):
        recorder = Recorder(httpx.Response(200, json=chat_completion("SELECT * FROM uptime;")))
        provider = make_openai(renderer, recorder)

        result = await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)

        assert result.sql == "SELECT * FROM uptime;"
        assert result.token_usage is not None
        assert (result.token_usage.input_tokens, result.token_usage.output_tokens) == (120, 8)

        request = recorder.requests[0]
        assert str(request.url) == "https://openai.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        body = recorder.body
        assert body["model"] == "gpt-4o-mini"
        assert [m["role"] for m in body["messages"]] == ["system", "user"]
        assert UPTIME_SCHEMA in body["messages"][1]["content"]

    @pytest.mark.parametrize("status", [401, 403])
    async def test_rejected_key(self, renderer: PromptRenderer, status: int):
        provider = make_openai(renderer, Recorder(httpx.Response(status, json={})))
        with pytest.raises(InvalidAPIKeyError):
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)

    async def test_rate_limited_with_retry_after(self, renderer: PromptRenderer):
        response = httpx.Response(429, headers={"retry-after": "7"}, json={})
        provider = make_openai(renderer, Recorder(response))

        with pytest.raises(RateLimitedError) as exc_info:
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)
        assert exc_info.value.retry_after == 7.0
        assert exc_info.value.user_message == "Rate limited. Please retry after 7 seconds."

    async def test_client_error_carries_provider_message(self, renderer: PromptRenderer):
        response = httpx.Response(400, json={"error": {"message": "context length exceeded"}})
        provider = make_openai(renderer, Recorder(response))

        with pytest.raises(CannotTranslateError) as exc_info:
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)
        assert exc_info.value.user_message == "context length exceeded"

    async def test_server_error(self, renderer: PromptRenderer):
        provider = make_openai(renderer, Recorder(httpx.Response(503, text="unavailable")))
        with pytest.raises(NetworkError) as exc_info:
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)
        assert exc_info.value.user_message == "Network error: Server error: 503"

    async def test_transport_failure_is_wrapped(self, renderer: PromptRenderer):
        provider = make_openai(renderer, Recorder(httpx.ConnectError("connection refused")))
        with pytest.raises(NetworkError):
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)

    async def test_server_errors_are_retried(self, renderer: PromptRenderer, recorded_sleep):
        responses = iter(
            [httpx.Response(500), httpx.Response(200, json=chat_completion("SELECT 1;"))]
        )
        provider = make_openai(renderer, lambda request: next(responses))
        provider.retry_policy = RetryPolicy(sleep=recorded_sleep)

        result = await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)
        assert result.sql == "SELECT 1;"
        assert recorded_sleep.delays == [1.0]

    def test_missing_choices_is_invalid(self):
        with pytest.raises(InvalidResponseError):
            parse_chat_completion({"choices": []})


class TestGeminiProvider:
    async def test_translate(self, renderer: PromptRenderer):
        recorder = Recorder(httpx.Response(200, json=generate_content("SELECT * FROM uptime;")))
        provider = make_gemini(renderer, recorder)

        result = await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)

        assert result.sql == "SELECT * FROM uptime;"
        request = recorder.requests[0]
        assert (
            str(request.url)
            == "https://gemini.test/v1beta/models/gemini-2.0-flash-lite:generateContent"
        )
        assert request.headers["x-goog-api-key"] == "gm-test"
        body = recorder.body
        assert "osquery SQL translator" in body["systemInstruction"]["parts"][0]["text"]
        assert body["generationConfig"]["temperature"] == 0.0

    async def test_invalid_key_reported_as_bad_request(self, renderer: PromptRenderer):
        response = httpx.Response(
            400, json={"error": {"code": 400, "message": "API key not valid. Please pass a valid API key."}}
        )
        provider = make_gemini(renderer, Recorder(response))
        with pytest.raises(InvalidAPIKeyError):
            await provider.translate_to_sql("uptime?", UPTIME_SCHEMA)

    def test_usage_metadata(self):
        text, usage = parse_generate_content(generate_content("SELECT 1;"))
        assert text == "SELECT 1;"
        assert usage is not None
        assert usage.total_tokens == 96

    def test_blocked_prompt(self):
        with pytest.raises(CannotTranslateError) as exc_info:
            parse_generate_content({"promptFeedback": {"blockReason": "SAFETY"}})
        assert exc_info.value.user_message == "Request blocked by content filter"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"candidates": []},
            {"candidates": [{"finishReason": "MAX_TOKENS"}]},
            {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
        ],
    )
    def test_no_text_is_invalid(self, payload: dict):
        with pytest.raises(InvalidResponseError):
            parse_generate_content(payload)
