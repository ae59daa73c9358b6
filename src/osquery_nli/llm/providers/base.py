"""Abstract base class for translation providers.

This module defines the contract every provider implements and the
behavior they share: input validation, prompt rendering, retries,
the client-side timeout, single-flight request handling and SQL cleanup.
Subclasses only implement the wire call in ``_complete``.
"""

from __future__ import annotations

import asyncio
import json
import threading
from abc import ABC, abstractmethod
from typing import ClassVar

from pydantic import BaseModel

from osquery_nli.core.cancellation import CancelToken
from osquery_nli.core.errors import (
    CannotTranslateError,
    EmptyInputError,
    InvalidResponseError,
    LLMTimeoutError,
    NotConfiguredError,
    QueryCancelledError,
)
from osquery_nli.core.logging import get_logger
from osquery_nli.core.models import Row, TokenUsage
from osquery_nli.llm.prompts import RESULT_SUMMARY, SQL_TRANSLATION, PromptRenderer, RenderedPrompt
from osquery_nli.llm.retry import RetryPolicy

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_TOKENS = 2048


class LLMResponse(BaseModel):
    """Text and usage returned by one provider call."""

    content: str
    model: str
    token_usage: TokenUsage | None = None


class TranslationResult(BaseModel):
    sql: str
    token_usage: TokenUsage | None = None


class SummaryResult(BaseModel):
    answer: str
    token_usage: TokenUsage | None = None


def clean_sql_response(text: str) -> str:
    """Strip whitespace and markdown code fences from model output."""
    return text.strip().replace("```sql", "").replace("```", "").strip()


def parse_retry_after(value: str | None) -> float | None:
    """Seconds from a retry-after header, or None when absent or not numeric."""
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class LLMProvider(ABC):
    """Abstract base for translation providers.

    All providers (Claude, Gemini, OpenAI) implement ``_complete``. A
    provider instance runs at most one wire call at a time: starting a new
    one cancels the call in flight, whose caller then sees
    QueryCancelledError.
    """

    provider_id: ClassVar[str]
    display_name: ClassVar[str]

    def __init__(
        self,
        api_key: str | None,
        model: str,
        renderer: PromptRenderer,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        retry_policy: RetryPolicy | None = None,
    ):
        self.api_key = api_key or ""
        self.model = model
        self.renderer = renderer
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.retry_policy = retry_policy or RetryPolicy()
        self._lock = threading.Lock()
        self._current: asyncio.Task[LLMResponse] | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.strip())

    @property
    def has_pending_request(self) -> bool:
        with self._lock:
            return self._current is not None and not self._current.done()

    async def translate_to_sql(
        self, question: str, schema_context: str, cancel_token: CancelToken | None = None
    ) -> TranslationResult:
        """Translate a natural-language question into osquery SQL.

        Raises:
            NotConfiguredError: No API key
            EmptyInputError: Question or schema context is blank
            CannotTranslateError: The model answered with ERROR: or refused
        """
        self._ensure_configured()
        if not question.strip():
            raise EmptyInputError("query")
        if not schema_context.strip():
            raise EmptyInputError("schema context")

        prompt = self.renderer.render(
            SQL_TRANSLATION, {"question": question, "schema": schema_context}
        )
        response = await self.retry_policy.run(lambda: self._send(prompt), cancel_token)

        sql = clean_sql_response(response.content)
        if sql.upper().startswith("ERROR:"):
            raise CannotTranslateError(sql)
        if not sql:
            raise InvalidResponseError()

        logger.debug("sql_translated", provider=self.provider_id, model=self.model, sql=sql)
        return TranslationResult(sql=sql, token_usage=response.token_usage)

    async def summarize_results(
        self,
        question: str,
        sql: str,
        rows: list[Row],
        cancel_token: CancelToken | None = None,
    ) -> SummaryResult:
        """Explain query results in plain language."""
        self._ensure_configured()
        if not question.strip():
            raise EmptyInputError("question")
        if not sql.strip():
            raise EmptyInputError("SQL")

        prompt = self.renderer.render(
            RESULT_SUMMARY,
            {"question": question, "sql": sql, "results_json": json.dumps(rows, indent=2)},
        )
        response = await self.retry_policy.run(lambda: self._send(prompt), cancel_token)
        return SummaryResult(answer=response.content.strip(), token_usage=response.token_usage)

    def cancel(self) -> None:
        """Cancel the request in flight, if any."""
        with self._lock:
            current, self._current = self._current, None
        if current is not None and not current.done():
            current.cancel()

    async def aclose(self) -> None:
        """Release network resources."""
        self.cancel()

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            raise NotConfiguredError()

    async def _send(self, prompt: RenderedPrompt) -> LLMResponse:
        task = asyncio.create_task(self._complete_with_timeout(prompt))
        with self._lock:
            previous, self._current = self._current, task
        if previous is not None and not previous.done():
            previous.cancel()

        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                task.cancel()
                raise
            raise QueryCancelledError() from None
        finally:
            with self._lock:
                if self._current is task:
                    self._current = None

    async def _complete_with_timeout(self, prompt: RenderedPrompt) -> LLMResponse:
        try:
            async with asyncio.timeout(self.timeout):
                return await self._complete(prompt)
        except TimeoutError as e:
            raise LLMTimeoutError() from e

    @abstractmethod
    async def _complete(self, prompt: RenderedPrompt) -> LLMResponse:
        """Make one wire call.

        Args:
            prompt: Rendered system and user messages

        Returns:
            LLMResponse with the model's text and token usage

        Raises:
            LLMError subclasses for every failure; raw transport errors
            must not escape
        """
