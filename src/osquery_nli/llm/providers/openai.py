"""OpenAI GPT provider implementation (chat completions over httpx)."""

from __future__ import annotations

from typing import Any

from osquery_nli.core.errors import InvalidResponseError
from osquery_nli.core.models import TokenUsage
from osquery_nli.llm.prompts import RenderedPrompt
from osquery_nli.llm.providers.base import LLMResponse
from osquery_nli.llm.providers.http import HTTPProvider

DEFAULT_MODEL = "gpt-4o-mini"


def parse_chat_completion(payload: dict[str, Any]) -> tuple[str, TokenUsage | None]:
    """Extract the first choice's text and the usage block of a chat completion."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise InvalidResponseError() from e
    if not isinstance(content, str):
        raise InvalidResponseError()

    usage = payload.get("usage")
    token_usage = None
    if isinstance(usage, dict):
        prompt_tokens = usage.get("prompt_tokens")
        completion_tokens = usage.get("completion_tokens")
        if isinstance(prompt_tokens, int) and isinstance(completion_tokens, int):
            token_usage = TokenUsage(input_tokens=prompt_tokens, output_tokens=completion_tokens)
    return content, token_usage


class OpenAIProvider(HTTPProvider):
    provider_id = "openai"
    display_name = "GPT (OpenAI)"
    default_base_url = "https://api.openai.com/v1"

    async def _complete(self, prompt: RenderedPrompt) -> LLMResponse:
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        _, payload = await self.post_json("chat/completions", body, headers)

        content, token_usage = parse_chat_completion(payload)
        return LLMResponse(
            content=content,
            model=payload.get("model", self.model),
            token_usage=token_usage,
        )
