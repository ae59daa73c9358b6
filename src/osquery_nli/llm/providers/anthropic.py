"""Anthropic Claude provider implementation."""

from __future__ import annotations

from typing import cast

import anthropic
from anthropic.types import MessageParam

from osquery_nli.core.errors import (
    CannotTranslateError,
    InvalidAPIKeyError,
    InvalidResponseError,
    LLMTimeoutError,
    NetworkError,
    RateLimitedError,
)
from osquery_nli.core.models import TokenUsage
from osquery_nli.llm.prompts import RenderedPrompt
from osquery_nli.llm.providers.base import LLMProvider, LLMResponse, parse_retry_after

DEFAULT_MODEL = "claude-sonnet-4-20250514"


def _body_message(body: object) -> str | None:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return None


class AnthropicProvider(LLMProvider):
    """Claude through the Anthropic async client.

    SDK-level retries are off; RetryPolicy handles backoff.
    """

    provider_id = "claude"
    display_name = "Claude (Anthropic)"

    def __init__(self, *args, client: anthropic.AsyncAnthropic | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._client = client

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key, max_retries=0, timeout=self.timeout
            )
        return self._client

    async def _complete(self, prompt: RenderedPrompt) -> LLMResponse:
        messages: list[MessageParam] = [
            cast(MessageParam, {"role": "user", "content": prompt.user})
        ]
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=prompt.temperature,
                system=prompt.system,
                messages=messages,
            )
        except anthropic.RateLimitError as e:
            raise RateLimitedError(parse_retry_after(e.response.headers.get("retry-after"))) from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise InvalidAPIKeyError() from e
        except anthropic.APITimeoutError as e:
            raise LLMTimeoutError() from e
        except anthropic.APIConnectionError as e:
            raise NetworkError(str(e)) from e
        except anthropic.InternalServerError as e:
            raise NetworkError(f"Server error: {e.status_code}") from e
        except anthropic.APIStatusError as e:
            if 400 <= e.status_code < 500:
                raise CannotTranslateError(
                    _body_message(e.body) or f"Client error: {e.status_code}"
                ) from e
            raise InvalidResponseError() from e

        # Response content is a list of blocks; only text blocks carry the answer
        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise InvalidResponseError()

        return LLMResponse(
            content=text,
            model=response.model,
            token_usage=TokenUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
        )

    async def aclose(self) -> None:
        await super().aclose()
        if self._client is not None:
            await self._client.close()
