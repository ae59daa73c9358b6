"""In-memory cache of answered questions.

Entries are keyed by the normalized question and are only served while
fresh and while the provider, model and table scope that produced them
are still the ones selected.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from osquery_nli.core.logging import get_logger
from osquery_nli.core.models import QueryResult

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_ENTRIES = 50


def normalize_question(text: str) -> str:
    """Lower-case and collapse whitespace."""
    return " ".join(text.lower().split())


@dataclass(frozen=True)
class CacheFingerprint:
    provider_id: str
    model: str
    table_scope: frozenset[str]


@dataclass
class CacheEntry:
    result: QueryResult
    cached_at: float
    fingerprint: CacheFingerprint


class ResultCache:
    """Bounded TTL cache of QueryResults.

    Args:
        ttl_seconds: Age after which an entry is evicted on read
        max_entries: Capacity; the oldest entries are evicted after an insert
        clock: Monotonic time source (injected by tests)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, question: str, fingerprint: CacheFingerprint) -> QueryResult | None:
        key = normalize_question(question)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self.clock() - entry.cached_at >= self.ttl_seconds:
            del self._entries[key]
            logger.debug("cache_entry_expired", question=key)
            return None

        if entry.fingerprint != fingerprint:
            del self._entries[key]
            logger.debug("cache_entry_stale", question=key)
            return None

        return entry.result

    def put(self, question: str, fingerprint: CacheFingerprint, result: QueryResult) -> None:
        self._entries[normalize_question(question)] = CacheEntry(
            result=result, cached_at=self.clock(), fingerprint=fingerprint
        )
        if len(self._entries) > self.max_entries:
            oldest = sorted(self._entries.items(), key=lambda item: item[1].cached_at)
            for key, _ in oldest[: len(self._entries) - self.max_entries]:
                del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, question: object) -> bool:
        return isinstance(question, str) and normalize_question(question) in self._entries
