"""Query pipeline orchestrator.

Runs a question through schema lookup, translation, execution and
summarization. At most one run is active per pipeline; starting a new
run cancels the previous one.

Usage:
    pipeline = QueryPipeline(inventory, registry, preferences, cache=ResultCache())
    result = await pipeline.run("Which apps start at login?")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Protocol

from osquery_nli.core.cancellation import CancelToken
from osquery_nli.core.errors import (
    EmptyInputError,
    NoSchemaAvailableError,
    NotConfiguredError,
    OsqueryNLIError,
    QueryCancelledError,
)
from osquery_nli.core.logging import get_logger, log_context
from osquery_nli.core.models import QueryResult, Result, Row, TokenUsage
from osquery_nli.core.preferences import QuerySettings
from osquery_nli.history import QueryHistoryLogger, QuerySource
from osquery_nli.inventory.base import InventoryClient
from osquery_nli.llm.providers import LLMProvider
from osquery_nli.pipeline.base import (
    PipelineRun,
    PipelineStage,
    Question,
    execute_statements,
)
from osquery_nli.pipeline.cache import CacheFingerprint, ResultCache

logger = get_logger(__name__)

SettingsSource = Callable[[], QuerySettings]


class ProviderSource(Protocol):
    def get(self, provider_id: str, model: str | None = None) -> LLMProvider: ...


def _raised_by_task_cancel() -> bool:
    """True if the current task itself is being cancelled."""
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0


class QueryPipeline:
    """Natural-language question to answered QueryResult.

    Args:
        inventory: Where SQL runs
        providers: Supplies the provider for the selected id and model
        settings: Called at the start of every run for the current QuerySettings
        cache: Result cache; None disables caching entirely
        history: Successful uncached runs are logged here
        clock: Time source for execution_time
    """

    def __init__(
        self,
        inventory: InventoryClient,
        providers: ProviderSource,
        settings: SettingsSource,
        cache: ResultCache | None = None,
        history: QueryHistoryLogger | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.inventory = inventory
        self.providers = providers
        self.settings = settings
        self.cache = cache
        self.history = history
        self.clock = clock
        self._active: PipelineRun | None = None
        self._active_provider: LLMProvider | None = None

    @property
    def stage(self) -> PipelineStage:
        run = self._active
        return run.stage if run is not None else PipelineStage.IDLE

    @property
    def is_running(self) -> bool:
        return self._active is not None

    async def run(self, question: str, force_refresh: bool = False) -> QueryResult:
        """Answer ``question``.

        Raises:
            EmptyInputError: Blank question
            NotConfiguredError: Selected provider has no API key
            NoSchemaAvailableError: No tables enabled, or no schema for them
            QueryCancelledError: The run was cancelled or superseded
            OsqueryNLIError: Any other provider or inventory failure
        """
        text = question.strip()
        if not text:
            raise EmptyInputError("question")

        settings = self.settings()
        provider = self.providers.get(settings.provider, settings.model)
        if not provider.is_configured:
            raise NotConfiguredError()
        tables = frozenset(settings.enabled_tables)
        if not tables:
            raise NoSchemaAvailableError()

        fingerprint = CacheFingerprint(provider.provider_id, provider.model, tables)
        if self.cache is not None and settings.cache_enabled and not force_refresh:
            cached = self.cache.get(text, fingerprint)
            if cached is not None:
                logger.info("pipeline_cache_hit", question=text)
                return cached

        self.cancel()

        run = PipelineRun(question=Question(text=text, tables=tables))
        self._active = run
        self._active_provider = provider
        run.task = asyncio.create_task(self._execute(run, provider, fingerprint))

        try:
            return await run.task
        except asyncio.CancelledError:
            if _raised_by_task_cancel():
                run.cancel_token.cancel()
                run.task.cancel()
                raise
            raise QueryCancelledError() from None

    async def ask(self, question: str, force_refresh: bool = False) -> Result[QueryResult]:
        """Like run(), but report failures as a Result carrying the user message.

        An unknown provider id in the settings is reported the same way.
        """
        try:
            return Result.ok(await self.run(question, force_refresh=force_refresh))
        except OsqueryNLIError as e:
            return Result.fail(e.user_message)
        except ValueError as e:
            return Result.fail(str(e))

    def cancel(self) -> None:
        """Cancel the active run and its provider's in-flight request."""
        run = self._active
        if run is None:
            return
        run.cancel_token.cancel()
        if self._active_provider is not None:
            self._active_provider.cancel()
        if run.task is not None and not run.task.done():
            run.task.cancel()
        logger.info("pipeline_run_cancelled", run_id=run.run_id)

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    async def translate_and_execute(
        self, question: str, cancel_token: CancelToken | None = None
    ) -> tuple[str, list[Row]]:
        """Translate and execute without summarizing, caching or touching the stage.

        Returns:
            The translated SQL and the concatenated rows of its statements
        """
        text = question.strip()
        if not text:
            raise EmptyInputError("question")

        settings = self.settings()
        provider = self.providers.get(settings.provider, settings.model)
        if not provider.is_configured:
            raise NotConfiguredError()

        schema = await self.inventory.get_schema(sorted(settings.enabled_tables))
        if not schema.strip():
            raise NoSchemaAvailableError()

        translation = await provider.translate_to_sql(text, schema, cancel_token)
        rows = await execute_statements(self.inventory, translation.sql, cancel_token)
        return translation.sql, rows

    async def _execute(
        self, run: PipelineRun, provider: LLMProvider, fingerprint: CacheFingerprint
    ) -> QueryResult:
        token = run.cancel_token
        metrics = run.metrics
        assert metrics is not None
        text = run.question.text
        started = self.clock()

        with log_context(run_id=run.run_id):
            logger.info(
                "pipeline_run_started",
                provider=provider.provider_id,
                model=provider.model,
                tables=len(run.question.tables),
            )
            try:
                run.advance(PipelineStage.TRANSLATING)
                schema = await self.inventory.get_schema(sorted(run.question.tables))
                if not schema.strip():
                    raise NoSchemaAvailableError()
                token.check()

                translation = await provider.translate_to_sql(text, schema, token)
                self._record_usage(run, translation.token_usage)

                run.advance(PipelineStage.EXECUTING)
                rows = await execute_statements(self.inventory, translation.sql, token, metrics)

                run.advance(PipelineStage.SUMMARIZING)
                summary = await provider.summarize_results(text, translation.sql, rows, token)
                self._record_usage(run, summary.token_usage)
                token.check()

                result = QueryResult(
                    sql=translation.sql,
                    rows=rows,
                    execution_time=self.clock() - started,
                    summary=summary.answer,
                    token_usage=TokenUsage.combine(translation.token_usage, summary.token_usage),
                )
            except asyncio.CancelledError:
                run.finish(PipelineStage.CANCELLED)
                raise
            except OsqueryNLIError as e:
                if token.is_cancelled and not isinstance(e, QueryCancelledError):
                    run.finish(PipelineStage.CANCELLED)
                    raise QueryCancelledError() from e
                if isinstance(e, QueryCancelledError):
                    run.finish(PipelineStage.CANCELLED)
                logger.warning("pipeline_run_failed", error=type(e).__name__, message=e.user_message)
                raise
            finally:
                if run.stage != PipelineStage.CANCELLED:
                    run.finish(PipelineStage.IDLE)
                if self._active is run:
                    self._active = None
                    self._active_provider = None

            if self.cache is not None:
                self.cache.put(text, fingerprint, result)
            self._log_history(text, result.row_count)
            logger.info("pipeline_run_completed", **metrics.finish().to_dict())
            return result

    def _record_usage(self, run: PipelineRun, usage: TokenUsage | None) -> None:
        if run.metrics is not None:
            run.metrics.record_llm_call(
                usage.input_tokens if usage else 0, usage.output_tokens if usage else 0
            )

    def _log_history(self, text: str, row_count: int) -> None:
        if self.history is None:
            return
        try:
            self.history.log_query(text, QuerySource.APP, row_count=row_count)
        except OSError as e:
            logger.warning("history_write_failed", error=str(e))
