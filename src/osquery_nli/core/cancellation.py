"""Cooperative cancellation for pipeline runs."""

from __future__ import annotations

import asyncio

from osquery_nli.core.errors import QueryCancelledError


class CancelToken:
    """Flag checked at every pipeline boundary.

    Once cancelled a token stays cancelled. ``sleep`` wakes early when the
    token is cancelled so backoff delays never outlive a cancelled run.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        """Raise QueryCancelledError if the token has been cancelled."""
        if self._event.is_set():
            raise QueryCancelledError()

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first."""
        if seconds > 0:
            try:
                async with asyncio.timeout(seconds):
                    await self._event.wait()
            except TimeoutError:
                pass
        self.check()
