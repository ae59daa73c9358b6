"""Persistent storage for scheduled query results.

All results live in one JSON document (scheduled_results.json). Every
write keeps only the newest ``max_results_per_query`` results per query.
"""

from __future__ import annotations

import threading
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from osquery_nli.core.logging import get_logger
from osquery_nli.core.storage import read_json, write_json
from osquery_nli.scheduler.models import ScheduledQueryResult

logger = get_logger(__name__)

RESULTS_FILENAME = "scheduled_results.json"

_results_adapter = TypeAdapter(list[ScheduledQueryResult])


class ScheduledQueryResultStore:
    def __init__(self, path: Path, max_results_per_query: int = 100):
        self.path = path
        self.max_results_per_query = max_results_per_query
        self._lock = threading.Lock()

    def save_result(self, result: ScheduledQueryResult) -> None:
        with self._lock:
            results = self._load()
            results.append(result)
            self._save(self._trim(results))
        logger.debug(
            "scheduled_result_saved",
            scheduled_query_id=result.scheduled_query_id,
            row_count=result.row_count,
        )

    def get_results(self, scheduled_query_id: str, limit: int = 20) -> list[ScheduledQueryResult]:
        """Results for one query, newest first."""
        with self._lock:
            results = self._load()
        matching = [r for r in results if r.scheduled_query_id == scheduled_query_id]
        matching.sort(key=lambda r: r.timestamp, reverse=True)
        return matching[:limit]

    def get_latest_result(self, scheduled_query_id: str) -> ScheduledQueryResult | None:
        results = self.get_results(scheduled_query_id, limit=1)
        return results[0] if results else None

    def clear_results(self, scheduled_query_id: str) -> None:
        with self._lock:
            results = self._load()
            self._save([r for r in results if r.scheduled_query_id != scheduled_query_id])

    def clear_all(self) -> None:
        with self._lock:
            self._save([])

    def _trim(self, results: list[ScheduledQueryResult]) -> list[ScheduledQueryResult]:
        grouped: dict[str, list[ScheduledQueryResult]] = {}
        for result in results:
            grouped.setdefault(result.scheduled_query_id, []).append(result)

        trimmed: list[ScheduledQueryResult] = []
        for query_results in grouped.values():
            query_results.sort(key=lambda r: r.timestamp, reverse=True)
            trimmed.extend(query_results[: self.max_results_per_query])
        return trimmed

    def _load(self) -> list[ScheduledQueryResult]:
        data = read_json(self.path, default=[])
        try:
            return _results_adapter.validate_python(data)
        except ValidationError as e:
            logger.error("scheduled_results_unreadable", path=str(self.path), error=str(e))
            return []

    def _save(self, results: list[ScheduledQueryResult]) -> None:
        write_json(self.path, _results_adapter.dump_python(results, mode="json"))
