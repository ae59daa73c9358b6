"""Scheduler command - run scheduled queries in the foreground."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from osquery_nli.cli.common import VerboseOption, console, get_app, run_async, setup_logging


def scheduler(
    once: Annotated[
        bool,
        typer.Option(
            "--once",
            help="Run the due queries once and exit",
        ),
    ] = False,
    verbose: VerboseOption = 0,
) -> None:
    """Run due scheduled queries on a fixed tick until interrupted.

    Alerts are delivered to the log when notifications are enabled in
    settings.json.
    """
    setup_logging(verbosity=max(verbose, 1))
    app = get_app()
    service = app.scheduler()

    if once:
        results = run_async(app, service.check_and_run_due())
        failed = sum(1 for r in results if r.error)
        console.print(f"Ran {len(results)} scheduled queries ({failed} failed)")
        return

    async def _serve() -> None:
        service.start()
        try:
            await asyncio.Event().wait()
        finally:
            await service.stop()

    console.print(
        f"[bold]Scheduler running[/bold] (tick every {service.check_interval:.0f}s, Ctrl+C to stop)"
    )
    try:
        run_async(app, _serve())
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped[/yellow]")
