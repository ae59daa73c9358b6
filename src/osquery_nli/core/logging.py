"""Structured logging for the query pipeline and scheduler.

Interactive commands render events for a terminal; the scheduler can emit
JSON lines instead (``OSQUERY_NLI_LOG_FORMAT=json``). Both go to stderr so
command output on stdout stays clean.

    logger = get_logger(__name__)
    with log_context(run_id=run.run_id):
        logger.info("pipeline_stage_changed", stage="translating")
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, cast

import structlog
from structlog.typing import FilteringBoundLogger, Processor


@dataclass
class RunMetrics:
    """Counters and stage timings for one pipeline run, logged on completion."""

    run_id: str
    llm_calls: int = 0
    llm_input_tokens: int = 0
    llm_output_tokens: int = 0
    statements_executed: int = 0
    rows_returned: int = 0
    timings: dict[str, float] = field(default_factory=dict)
    _started: float = field(default_factory=time.perf_counter, repr=False)
    _elapsed: float | None = field(default=None, repr=False)

    @property
    def duration_seconds(self) -> float:
        if self._elapsed is not None:
            return self._elapsed
        return time.perf_counter() - self._started

    def record_timing(self, stage: str, seconds: float) -> None:
        self.timings[stage] = self.timings.get(stage, 0.0) + seconds

    def record_llm_call(self, input_tokens: int = 0, output_tokens: int = 0) -> None:
        self.llm_calls += 1
        self.llm_input_tokens += input_tokens
        self.llm_output_tokens += output_tokens

    def finish(self) -> RunMetrics:
        """Freeze the duration. Later calls keep the first value."""
        if self._elapsed is None:
            self._elapsed = time.perf_counter() - self._started
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "duration_seconds": round(self.duration_seconds, 3),
            "llm_calls": self.llm_calls,
            "llm_input_tokens": self.llm_input_tokens,
            "llm_output_tokens": self.llm_output_tokens,
            "statements_executed": self.statements_executed,
            "rows_returned": self.rows_returned,
            "timings": {stage: round(seconds, 3) for stage, seconds in self.timings.items()},
        }


def _renderer(log_format: str, color: bool) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=color,
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    show_timestamps: bool = True,
    color: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_format: "console" or "json"
        show_timestamps: Prefix events with an ISO UTC timestamp
        color: Colored console output
    """
    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]
    if show_timestamps:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    structlog.configure(
        processors=processors + _renderer(log_format, color),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # httpx and anthropic log through stdlib logging
    logging.basicConfig(
        format="%(name)s: %(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    return cast(FilteringBoundLogger, structlog.get_logger(name))


@contextmanager
def log_context(**context: Any) -> Iterator[None]:
    """Bind ``context`` to every event logged inside the block.

    Bindings live in contextvars, so a task created inside the block
    inherits them and concurrent tasks never see each other's.
    """
    with structlog.contextvars.bound_contextvars(**context):
        yield


configure_logging(log_level="WARNING", show_timestamps=False)
