"""Exponential backoff for retryable provider failures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from osquery_nli.core.cancellation import CancelToken
from osquery_nli.core.errors import OsqueryNLIError, QueryCancelledError, RateLimitedError
from osquery_nli.core.logging import get_logger
from osquery_nli.llm.config import RetryConfig

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an operation up to ``max_retries`` times after the first attempt.

    Only errors whose ``retryable`` flag is set are retried. A rate-limit
    ``retry_after`` longer than the computed backoff replaces it.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    sleep: Sleep | None = field(default=None, compare=False)

    @classmethod
    def from_config(cls, config: RetryConfig, sleep: Sleep | None = None) -> RetryPolicy:
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay_seconds,
            max_delay=config.max_delay_seconds,
            sleep=sleep,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after ``attempt`` (0-based) failed."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        cancel_token: CancelToken | None = None,
    ) -> T:
        """Run ``operation`` with retries.

        Raises:
            QueryCancelledError: If the token is cancelled before an attempt
                or during a backoff sleep
            OsqueryNLIError: The last error when not retryable or retries run out
        """
        attempt = 0
        while True:
            if cancel_token is not None:
                cancel_token.check()
            try:
                return await operation()
            except QueryCancelledError:
                raise
            except OsqueryNLIError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                delay = self.delay_for(attempt)
                if isinstance(e, RateLimitedError) and e.retry_after is not None:
                    delay = max(delay, e.retry_after)
                logger.info(
                    "llm_request_retrying",
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay_seconds=delay,
                    error=type(e).__name__,
                )
                await self._sleep(delay, cancel_token)
                attempt += 1

    async def _sleep(self, delay: float, cancel_token: CancelToken | None) -> None:
        if self.sleep is not None:
            await self.sleep(delay)
            if cancel_token is not None:
                cancel_token.check()
        elif cancel_token is not None:
            await cancel_token.sleep(delay)
        else:
            await asyncio.sleep(delay)
