"""Query history shared by the interactive pipeline and other front ends.

History lives in ``query_history.json`` in the data directory, newest
entry first, capped at ``max_entries``.
"""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from osquery_nli.core.logging import get_logger
from osquery_nli.core.storage import ensure_data_dir, read_json, write_json

logger = get_logger(__name__)

HISTORY_FILENAME = "query_history.json"


class QuerySource(str, Enum):
    """Where a query came from."""

    APP = "app"
    MCP = "mcp"


class QueryHistoryEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    query: str  # natural language question or SQL
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    source: QuerySource
    row_count: int | None = None


_entries_adapter = TypeAdapter(list[QueryHistoryEntry])


class QueryHistoryLogger:
    """Append-at-head history log backed by one JSON document."""

    def __init__(self, directory: Path, max_entries: int = 100):
        self.directory = ensure_data_dir(directory)
        self.max_entries = max_entries
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self.directory / HISTORY_FILENAME

    def log_query(self, query: str, source: QuerySource, row_count: int | None = None) -> QueryHistoryEntry:
        entry = QueryHistoryEntry(query=query, source=source, row_count=row_count)
        with self._lock:
            entries = self._read()
            entries.insert(0, entry)
            self._write(entries[: self.max_entries])
        return entry

    def read_entries(self, source: QuerySource | None = None) -> list[QueryHistoryEntry]:
        """Entries newest first, optionally only those from ``source``."""
        with self._lock:
            entries = self._read()
        if source is not None:
            entries = [e for e in entries if e.source == source]
        return entries

    def clear_entries(self, source: QuerySource | None = None) -> None:
        with self._lock:
            if source is None:
                self.path.unlink(missing_ok=True)
                return
            self._write([e for e in self._read() if e.source != source])

    def remove_entry(self, entry_id: str) -> None:
        with self._lock:
            self._write([e for e in self._read() if e.id != entry_id])

    def last_entry_timestamp(self) -> datetime | None:
        entries = self.read_entries()
        return entries[0].timestamp if entries else None

    def _read(self) -> list[QueryHistoryEntry]:
        data = read_json(self.path, default=[])
        try:
            entries = _entries_adapter.validate_python(data)
        except ValidationError as e:
            logger.warning("history_unreadable", path=str(self.path), error=str(e))
            return []
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    def _write(self, entries: list[QueryHistoryEntry]) -> None:
        write_json(self.path, _entries_adapter.dump_python(entries, mode="json"))
