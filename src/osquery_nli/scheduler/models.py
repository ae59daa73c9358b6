"""Scheduled query and scheduled result models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from osquery_nli.core.models import Row
from osquery_nli.scheduler.alerts import AlertRule

MAX_STORED_ROWS = 100
SUMMARY_PREVIEW_ROWS = 3


def utc_now() -> datetime:
    return datetime.now(UTC)


class ScheduleInterval(str, Enum):
    """How often a scheduled query runs."""

    EVERY_5_MINUTES = "5min"
    EVERY_15_MINUTES = "15min"
    EVERY_30_MINUTES = "30min"
    HOURLY = "1hour"
    EVERY_6_HOURS = "6hours"
    DAILY = "daily"

    @property
    def seconds(self) -> int:
        return _INTERVAL_SECONDS[self]

    @property
    def display_name(self) -> str:
        return _INTERVAL_NAMES[self]


_INTERVAL_SECONDS = {
    ScheduleInterval.EVERY_5_MINUTES: 300,
    ScheduleInterval.EVERY_15_MINUTES: 900,
    ScheduleInterval.EVERY_30_MINUTES: 1800,
    ScheduleInterval.HOURLY: 3600,
    ScheduleInterval.EVERY_6_HOURS: 21600,
    ScheduleInterval.DAILY: 86400,
}

_INTERVAL_NAMES = {
    ScheduleInterval.EVERY_5_MINUTES: "Every 5 minutes",
    ScheduleInterval.EVERY_15_MINUTES: "Every 15 minutes",
    ScheduleInterval.EVERY_30_MINUTES: "Every 30 minutes",
    ScheduleInterval.HOURLY: "Hourly",
    ScheduleInterval.EVERY_6_HOURS: "Every 6 hours",
    ScheduleInterval.DAILY: "Daily",
}


class ScheduledQuery(BaseModel):
    """A question or raw SQL statement run unattended at a fixed interval."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    text: str  # natural-language question, or SQL when is_raw_sql
    is_raw_sql: bool = False
    interval: ScheduleInterval = ScheduleInterval.HOURLY
    enabled: bool = True
    last_run: datetime | None = None
    last_result_count: int | None = None
    alert_rule: AlertRule | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def should_run(self, now: datetime) -> bool:
        """Enabled and never run, or at least one interval since the last run."""
        if not self.enabled:
            return False
        if self.last_run is None:
            return True
        return (now - self.last_run).total_seconds() >= self.interval.seconds


def create_summary(rows: list[Row], max_rows: int = SUMMARY_PREVIEW_ROWS) -> str | None:
    """Short text preview of the first rows ("key: value, ..." per row)."""
    if not rows:
        return None
    preview = "\n".join(
        ", ".join(f"{key}: {row[key]}" for key in sorted(row)) for row in rows[:max_rows]
    )
    if len(rows) > max_rows:
        return f"{preview}\n... and {len(rows) - max_rows} more rows"
    return preview


class ScheduledQueryResult(BaseModel):
    """One execution of a scheduled query: either captured rows or an error."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    scheduled_query_id: str
    timestamp: datetime = Field(default_factory=utc_now)
    row_count: int
    result_summary: str | None = None
    alert_triggered: bool = False
    sql: str | None = None
    error: str | None = None
    result_data: list[Row] | None = None  # at most MAX_STORED_ROWS rows
    columns: list[str] | None = None

    @classmethod
    def from_rows(
        cls,
        scheduled_query_id: str,
        rows: list[Row],
        alert_triggered: bool,
        sql: str | None,
        timestamp: datetime | None = None,
    ) -> ScheduledQueryResult:
        """Capture a successful run, keeping the first MAX_STORED_ROWS rows."""
        return cls(
            scheduled_query_id=scheduled_query_id,
            timestamp=timestamp or utc_now(),
            row_count=len(rows),
            result_summary=create_summary(rows),
            alert_triggered=alert_triggered,
            sql=sql,
            result_data=[dict(row) for row in rows[:MAX_STORED_ROWS]] or None,
            columns=sorted(rows[0].keys()) if rows else None,
        )

    @classmethod
    def failed(
        cls, scheduled_query_id: str, error: str, timestamp: datetime | None = None
    ) -> ScheduledQueryResult:
        return cls(
            scheduled_query_id=scheduled_query_id,
            timestamp=timestamp or utc_now(),
            row_count=0,
            alert_triggered=False,
            error=error,
        )

    @property
    def has_data(self) -> bool:
        return bool(self.result_data)
