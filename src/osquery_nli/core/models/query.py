"""Query result model shared by the pipeline, CLI and scheduler."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from osquery_nli.core.models.base import TokenUsage

Row = dict[str, str]


def stringify_value(value: Any) -> str:
    """Render a raw inventory value as the string shown to users."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, dict | list):
        return json.dumps(value, sort_keys=True)
    return str(value)


def stringify_rows(rows: list[dict[str, Any]]) -> list[Row]:
    return [{str(k): stringify_value(v) for k, v in row.items()} for row in rows]


class QueryResult(BaseModel):
    """Outcome of one question: the SQL that ran, its rows and an optional summary."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sql: str
    rows: list[Row] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    execution_time: float = 0.0
    summary: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    token_usage: TokenUsage | None = None

    @model_validator(mode="after")
    def _infer_columns(self) -> QueryResult:
        # Columns come from the first row's keys when the caller gave none
        if not self.columns and self.rows:
            self.columns = sorted(self.rows[0].keys())
        return self

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows
