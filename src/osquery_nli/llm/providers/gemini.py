"""Google Gemini provider implementation (generateContent REST API over httpx)."""

from __future__ import annotations

from typing import Any

import httpx

from osquery_nli.core.errors import CannotTranslateError, InvalidAPIKeyError, InvalidResponseError
from osquery_nli.core.models import TokenUsage
from osquery_nli.llm.prompts import RenderedPrompt
from osquery_nli.llm.providers.base import LLMResponse
from osquery_nli.llm.providers.http import HTTPProvider, error_message, raise_for_status

DEFAULT_MODEL = "gemini-2.0-flash-lite"
BLOCKED_MESSAGE = "Request blocked by content filter"


def parse_generate_content(payload: dict[str, Any]) -> tuple[str, TokenUsage | None]:
    """Extract the text and usage of a generateContent response.

    Raises:
        CannotTranslateError: The prompt was blocked by a safety filter
        InvalidResponseError: No candidate text (including responses stopped early)
    """
    feedback = payload.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        raise CannotTranslateError(BLOCKED_MESSAGE)

    try:
        parts = payload["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise InvalidResponseError() from e
    if not text:
        raise InvalidResponseError()

    metadata = payload.get("usageMetadata")
    token_usage = None
    if isinstance(metadata, dict):
        token_usage = TokenUsage(
            input_tokens=int(metadata.get("promptTokenCount", 0)),
            output_tokens=int(metadata.get("candidatesTokenCount", 0)),
        )
    return text, token_usage


class GeminiProvider(HTTPProvider):
    provider_id = "gemini"
    display_name = "Gemini (Google)"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    async def _complete(self, prompt: RenderedPrompt) -> LLMResponse:
        body = {
            "systemInstruction": {"parts": [{"text": prompt.system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt.user}]}],
            "generationConfig": {
                "maxOutputTokens": self.max_tokens,
                "temperature": prompt.temperature,
            },
        }
        headers = {"x-goog-api-key": self.api_key}
        _, payload = await self.post_json(f"models/{self.model}:generateContent", body, headers)

        text, token_usage = parse_generate_content(payload)
        return LLMResponse(
            content=text,
            model=payload.get("modelVersion", self.model),
            token_usage=token_usage,
        )

    def check_status(self, response: httpx.Response) -> None:
        # Gemini reports a bad key as 400 INVALID_ARGUMENT
        if response.status_code == 400 and "API key not valid" in (error_message(response) or ""):
            raise InvalidAPIKeyError()
        raise_for_status(response)
