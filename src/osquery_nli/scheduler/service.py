"""Scheduler service: runs due scheduled queries on a coarse tick.

Every ``check_interval`` seconds (and once immediately on start) each
enabled query whose interval has elapsed is run, one after another. A
failing query records an error result and never stops the tick.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from osquery_nli.core.cancellation import CancelToken
from osquery_nli.core.errors import OsqueryNLIError
from osquery_nli.core.logging import get_logger, log_context
from osquery_nli.core.models import Row
from osquery_nli.inventory.base import InventoryClient
from osquery_nli.notifications import LoggingNotifier, Notifier, alert_title, format_alert_message
from osquery_nli.pipeline.base import execute_statements
from osquery_nli.pipeline.orchestrator import SettingsSource
from osquery_nli.scheduler.alerts import AlertRule
from osquery_nli.scheduler.models import ScheduledQuery, ScheduledQueryResult, utc_now
from osquery_nli.scheduler.queries import ScheduledQueryStore
from osquery_nli.scheduler.store import ScheduledQueryResultStore

logger = get_logger(__name__)

DEFAULT_CHECK_INTERVAL_SECONDS = 60.0


class QueryTranslator(Protocol):
    async def translate_and_execute(
        self, question: str, cancel_token: CancelToken | None = None
    ) -> tuple[str, list[Row]]: ...


class SchedulerService:
    """Periodic runner for scheduled queries.

    Args:
        queries: Scheduled query collection; updated after every run
        results: Where run results are persisted
        inventory: Executes raw SQL queries directly
        translator: Translates and executes natural-language queries
        settings: Read per alert for the notifications toggle
        notifier: Alert delivery, LoggingNotifier by default
        check_interval: Seconds between ticks
        clock: Current UTC time (injected by tests)
    """

    def __init__(
        self,
        queries: ScheduledQueryStore,
        results: ScheduledQueryResultStore,
        inventory: InventoryClient,
        translator: QueryTranslator,
        settings: SettingsSource,
        notifier: Notifier | None = None,
        check_interval: float = DEFAULT_CHECK_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queries = queries
        self.results = results
        self.inventory = inventory
        self.translator = translator
        self.settings = settings
        self.notifier = notifier or LoggingNotifier()
        self.check_interval = check_interval
        self.clock = clock
        self._task: asyncio.Task[None] | None = None
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. A second call while running does nothing."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("scheduler_started", check_interval=self.check_interval)

    async def stop(self) -> None:
        """Stop ticking and wait for the loop to exit. Safe to call when stopped."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("scheduler_stopped")

    async def check_and_run_due(self) -> list[ScheduledQueryResult]:
        """Run every due query once, in collection order."""
        now = self.clock()
        due = [query for query in self.queries.all() if query.should_run(now)]
        if due:
            logger.debug("scheduled_queries_due", count=len(due))
        return [await self._execute(query) for query in due]

    async def run_now(self, query_id: str) -> ScheduledQueryResult | None:
        """Run one query immediately regardless of its interval. None if unknown."""
        query = self.queries.get(query_id)
        if query is None:
            return None
        return await self._execute(query)

    async def _loop(self) -> None:
        while True:
            try:
                await self.check_and_run_due()
            except OSError as e:
                logger.error("scheduler_tick_failed", error=str(e))
            await asyncio.sleep(self.check_interval)

    async def _execute(self, query: ScheduledQuery) -> ScheduledQueryResult:
        async with self._run_lock:
            with log_context(scheduled_query_id=query.id):
                return await self._execute_locked(query)

    async def _execute_locked(self, query: ScheduledQuery) -> ScheduledQueryResult:
        now = self.clock()
        try:
            sql, rows = await self._run_query(query)
        except Exception as e:
            message = e.user_message if isinstance(e, OsqueryNLIError) else str(e)
            logger.warning("scheduled_query_failed", name=query.name, error=message)
            result = ScheduledQueryResult.failed(query.id, message, timestamp=now)
            self._record(query, result, last_run=now)
            return result

        rule = query.alert_rule
        alert_triggered = rule is not None and rule.should_alert(rows, query.last_result_count)
        if rule is not None and alert_triggered:
            self._notify(query, rule, len(rows))

        result = ScheduledQueryResult.from_rows(
            query.id, rows, alert_triggered=alert_triggered, sql=sql, timestamp=now
        )
        self._record(
            query,
            result,
            last_run=now,
            last_result_count=len(rows),
            last_triggered=now if alert_triggered else None,
        )
        logger.info(
            "scheduled_query_completed",
            name=query.name,
            row_count=len(rows),
            alert_triggered=alert_triggered,
        )
        return result

    async def _run_query(self, query: ScheduledQuery) -> tuple[str, list[Row]]:
        if query.is_raw_sql:
            sql = query.text.strip()
            return sql, await execute_statements(self.inventory, sql)
        return await self.translator.translate_and_execute(query.text)

    def _record(
        self,
        query: ScheduledQuery,
        result: ScheduledQueryResult,
        last_run: datetime,
        last_result_count: int | None = None,
        last_triggered: datetime | None = None,
    ) -> None:
        """Persist the result and the run fields. Store failures stay with this query."""
        try:
            self.results.save_result(result)
            stored = self.queries.record_run(
                query.id,
                last_run,
                last_result_count=last_result_count,
                last_triggered=last_triggered,
            )
        except OSError as e:
            logger.error("scheduled_query_store_failed", name=query.name, error=str(e))
            return
        if stored is None:
            logger.debug("scheduled_query_gone", name=query.name)

    def _notify(self, query: ScheduledQuery, rule: AlertRule, row_count: int) -> None:
        if not self.settings().notifications_enabled:
            logger.debug("alert_notification_skipped", name=query.name)
            return
        try:
            self.notifier.deliver(
                alert_title(query.name), format_alert_message(rule.condition, row_count), query.id
            )
        except Exception as e:
            logger.warning("alert_notification_failed", name=query.name, error=str(e))
