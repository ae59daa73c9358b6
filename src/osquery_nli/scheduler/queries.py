"""CRUD persistence for scheduled queries (scheduled_queries.json)."""

from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from osquery_nli.core.logging import get_logger
from osquery_nli.core.storage import read_json, write_json
from osquery_nli.scheduler.models import ScheduledQuery
from osquery_nli.scheduler.store import ScheduledQueryResultStore

logger = get_logger(__name__)

QUERIES_FILENAME = "scheduled_queries.json"

_queries_adapter = TypeAdapter(list[ScheduledQuery])


class ScheduledQueryStore:
    """Ordered collection of scheduled queries.

    Removing a query also clears its stored results.
    """

    def __init__(self, path: Path, results: ScheduledQueryResultStore):
        self.path = path
        self.results = results
        self._lock = threading.Lock()

    def all(self) -> list[ScheduledQuery]:
        with self._lock:
            return self._load()

    def get(self, query_id: str) -> ScheduledQuery | None:
        return next((q for q in self.all() if q.id == query_id), None)

    def find(self, id_or_name: str) -> ScheduledQuery | None:
        """Look up by id, id prefix or exact name."""
        queries = self.all()
        for query in queries:
            if query.id == id_or_name or query.name == id_or_name:
                return query
        prefixed = [q for q in queries if q.id.startswith(id_or_name)]
        return prefixed[0] if len(prefixed) == 1 else None

    def add(self, query: ScheduledQuery) -> ScheduledQuery:
        with self._lock:
            queries = self._load()
            if any(q.id == query.id for q in queries):
                raise ValueError(f"Scheduled query already exists: {query.id}")
            queries.append(query)
            self._save(queries)
        logger.info("scheduled_query_added", scheduled_query_id=query.id, name=query.name)
        return query

    def update(self, query: ScheduledQuery) -> bool:
        """Replace the stored query with the same id. False if it was removed meanwhile."""
        with self._lock:
            queries = self._load()
            for index, existing in enumerate(queries):
                if existing.id == query.id:
                    queries[index] = query
                    self._save(queries)
                    return True
        return False

    def record_run(
        self,
        query_id: str,
        last_run: datetime,
        last_result_count: int | None = None,
        last_triggered: datetime | None = None,
    ) -> ScheduledQuery | None:
        """Store the outcome of a run on the current record.

        Only ``last_run``, ``last_result_count`` and the alert rule's
        ``last_triggered`` change; edits made while the query ran are kept.
        None if the query was removed meanwhile.
        """
        with self._lock:
            queries = self._load()
            for index, existing in enumerate(queries):
                if existing.id != query_id:
                    continue
                update: dict[str, object] = {"last_run": last_run}
                if last_result_count is not None:
                    update["last_result_count"] = last_result_count
                if last_triggered is not None and existing.alert_rule is not None:
                    update["alert_rule"] = existing.alert_rule.model_copy(
                        update={"last_triggered": last_triggered}
                    )
                queries[index] = existing.model_copy(update=update)
                self._save(queries)
                return queries[index]
        return None

    def remove(self, query_id: str) -> bool:
        with self._lock:
            queries = self._load()
            remaining = [q for q in queries if q.id != query_id]
            if len(remaining) == len(queries):
                return False
            self._save(remaining)
        self.results.clear_results(query_id)
        logger.info("scheduled_query_removed", scheduled_query_id=query_id)
        return True

    def set_enabled(self, query_id: str, enabled: bool) -> ScheduledQuery | None:
        query = self.get(query_id)
        if query is None:
            return None
        updated = query.model_copy(update={"enabled": enabled})
        return updated if self.update(updated) else None

    def _load(self) -> list[ScheduledQuery]:
        data = read_json(self.path, default=[])
        try:
            return _queries_adapter.validate_python(data)
        except ValidationError as e:
            logger.error("scheduled_queries_unreadable", path=str(self.path), error=str(e))
            return []

    def _save(self, queries: list[ScheduledQuery]) -> None:
        write_json(self.path, _queries_adapter.dump_python(queries, mode="json"))
