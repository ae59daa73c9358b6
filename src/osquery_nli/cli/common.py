"""Shared CLI utilities and constants."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Annotated, TypeVar

import typer
from dotenv import load_dotenv
from rich.console import Console

from osquery_nli.core.config import Settings, get_settings
from osquery_nli.core.logging import configure_logging
from osquery_nli.core.preferences import SETTINGS_FILENAME, PreferencesStore
from osquery_nli.core.storage import ensure_data_dir
from osquery_nli.favorites import FavoritesStore
from osquery_nli.history import QueryHistoryLogger
from osquery_nli.inventory import OsqueryClient
from osquery_nli.llm import PromptRenderer, ProviderRegistry, load_llm_config
from osquery_nli.pipeline import QueryPipeline, ResultCache
from osquery_nli.scheduler.queries import QUERIES_FILENAME, ScheduledQueryStore
from osquery_nli.scheduler.service import SchedulerService
from osquery_nli.scheduler.store import RESULTS_FILENAME, ScheduledQueryResultStore

# Load .env file from current directory (for API keys, etc.)
load_dotenv()

# Shared console instance
console = Console()

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v=INFO, -vv=DEBUG)",
    ),
]


def setup_logging(verbosity: int = 0, log_format: str | None = None) -> None:
    """Configure structured logging based on verbosity level.

    Args:
        verbosity: 0=configured level (WARNING by default), 1=INFO, 2+=DEBUG
        log_format: "console" or "json"; defaults to OSQUERY_NLI_LOG_FORMAT
    """
    settings = get_settings()
    if verbosity >= 2:
        level = "DEBUG"
    elif verbosity >= 1:
        level = "INFO"
    else:
        level = settings.log_level

    log_format = log_format or settings.log_format
    configure_logging(
        log_level=level,
        log_format=log_format,
        show_timestamps=verbosity >= 1,
        color=log_format == "console",
    )


@dataclass
class AppContext:
    """Everything a command needs, wired from Settings."""

    settings: Settings
    preferences: PreferencesStore
    inventory: OsqueryClient
    providers: ProviderRegistry
    scheduler_providers: ProviderRegistry
    history: QueryHistoryLogger
    favorites: FavoritesStore
    results: ScheduledQueryResultStore
    queries: ScheduledQueryStore

    def pipeline(self, cache: bool = True) -> QueryPipeline:
        return QueryPipeline(
            self.inventory,
            self.providers,
            self.preferences,
            cache=ResultCache(
                ttl_seconds=self.settings.cache_ttl_seconds,
                max_entries=self.settings.cache_max_entries,
            )
            if cache
            else None,
            history=self.history,
        )

    async def aclose(self) -> None:
        await self.providers.aclose()
        await self.scheduler_providers.aclose()

    def scheduler(self) -> SchedulerService:
        """Scheduler running on its own provider instances."""
        return SchedulerService(
            self.queries,
            self.results,
            self.inventory,
            QueryPipeline(self.inventory, self.scheduler_providers, self.preferences),
            self.preferences,
            check_interval=self.settings.scheduler_interval_seconds,
        )


def get_app(settings: Settings | None = None) -> AppContext:
    """Build the application context. Caller closes it with ``aclose``."""
    settings = settings or get_settings()
    data_dir = ensure_data_dir(settings.data_dir)

    try:
        llm_config = load_llm_config(settings.llm_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    renderer = PromptRenderer(settings.prompts_path)
    results = ScheduledQueryResultStore(data_dir / RESULTS_FILENAME)
    return AppContext(
        settings=settings,
        preferences=PreferencesStore(data_dir / SETTINGS_FILENAME),
        inventory=OsqueryClient(
            osqueryi_path=settings.osqueryi_path,
            extension_path=settings.osquery_extension_path,
        ),
        providers=ProviderRegistry(llm_config, renderer),
        scheduler_providers=ProviderRegistry(llm_config, renderer),
        history=QueryHistoryLogger(data_dir),
        favorites=FavoritesStore(data_dir),
        results=results,
        queries=ScheduledQueryStore(data_dir / QUERIES_FILENAME, results),
    )


T = TypeVar("T")


def run_async(app: AppContext, awaitable: Awaitable[T]) -> T:
    """Run ``awaitable`` to completion, then release the app's network clients."""

    async def _main() -> T:
        try:
            return await awaitable
        finally:
            await app.aclose()

    return asyncio.run(_main())
