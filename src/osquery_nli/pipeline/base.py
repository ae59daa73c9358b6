"""Pipeline base types.

Defines the run stages, the per-run state and the statement execution
helpers shared by the interactive pipeline and the scheduler.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from osquery_nli.core.cancellation import CancelToken
from osquery_nli.core.logging import RunMetrics, get_logger
from osquery_nli.core.models import Row
from osquery_nli.inventory.base import InventoryClient

logger = get_logger(__name__)


class PipelineStage(str, Enum):
    """Stage of the active pipeline run."""

    IDLE = "idle"
    TRANSLATING = "translating"
    EXECUTING = "executing"
    SUMMARIZING = "summarizing"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Question:
    """A question and the table scope it is asked against."""

    text: str
    tables: frozenset[str]


@dataclass
class PipelineRun:
    """State of one in-flight pipeline run."""

    question: Question
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    cancel_token: CancelToken = field(default_factory=CancelToken)
    stage: PipelineStage = PipelineStage.IDLE
    task: asyncio.Task | None = None
    metrics: RunMetrics | None = None
    _stage_started: float = field(default_factory=time.perf_counter)

    def __post_init__(self) -> None:
        if self.metrics is None:
            self.metrics = RunMetrics(run_id=self.run_id)

    def advance(self, stage: PipelineStage) -> None:
        """Move to ``stage``, checking cancellation first and timing the previous stage."""
        self.cancel_token.check()
        self._close_stage()
        self.stage = stage
        logger.debug("pipeline_stage_changed", stage=stage.value)

    def finish(self, stage: PipelineStage = PipelineStage.IDLE) -> None:
        self._close_stage()
        self.stage = stage

    def _close_stage(self) -> None:
        now = time.perf_counter()
        if self.stage not in (PipelineStage.IDLE, PipelineStage.CANCELLED) and self.metrics:
            self.metrics.record_timing(self.stage.value, now - self._stage_started)
        self._stage_started = now


def split_statements(sql: str) -> list[str]:
    """Split ``;``-separated SQL into stripped, non-empty statements."""
    return [statement.strip() for statement in sql.split(";") if statement.strip()]


async def execute_statements(
    inventory: InventoryClient,
    sql: str,
    cancel_token: CancelToken | None = None,
    metrics: RunMetrics | None = None,
) -> list[Row]:
    """Execute each statement of ``sql`` in order and concatenate their rows.

    Cancellation is checked before every statement.
    """
    rows: list[Row] = []
    for statement in split_statements(sql):
        if cancel_token is not None:
            cancel_token.check()
        statement_rows = await inventory.execute(statement)
        rows.extend(statement_rows)
        if metrics is not None:
            metrics.statements_executed += 1
            metrics.rows_returned += len(statement_rows)
    return rows
