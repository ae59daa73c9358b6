"""Tables command - list osquery tables and manage the enabled table scope."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table as RichTable

from osquery_nli.cli.common import VerboseOption, console, get_app, run_async, setup_logging
from osquery_nli.core.errors import OsqueryNLIError


def tables(
    enable: Annotated[
        list[str] | None,
        typer.Option(
            "--enable",
            "-e",
            help="Add a table to the scope questions are asked against (repeatable)",
        ),
    ] = None,
    disable: Annotated[
        list[str] | None,
        typer.Option(
            "--disable",
            "-d",
            help="Remove a table from the scope (repeatable)",
        ),
    ] = None,
    enabled_only: Annotated[
        bool,
        typer.Option(
            "--enabled",
            help="Only list enabled tables",
        ),
    ] = False,
    verbose: VerboseOption = 0,
) -> None:
    """List the tables osquery offers and which ones questions may use.

    Examples:

        osquery-nli tables

        osquery-nli tables --enable usb_devices --disable docker_containers
    """
    setup_logging(verbosity=verbose)
    app = get_app()
    settings = app.preferences.load()

    if enable or disable:
        enabled = [t for t in settings.enabled_tables if t not in set(disable or [])]
        enabled += [t for t in enable or [] if t not in enabled]
        settings = settings.model_copy(update={"enabled_tables": enabled})
        app.preferences.save(settings)
        console.print(f"[green]{len(enabled)} tables enabled[/green]")

    try:
        available = run_async(app, app.inventory.get_all_tables())
    except OsqueryNLIError as e:
        console.print(f"[red]Error: {e.user_message}[/red]")
        raise typer.Exit(1) from e

    enabled_set = set(settings.enabled_tables)
    table = RichTable(show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Enabled", justify="center")
    for name in available:
        if enabled_only and name not in enabled_set:
            continue
        table.add_row(name, "[green]✓[/green]" if name in enabled_set else "")
    console.print(table)

    missing = sorted(enabled_set - set(available))
    if missing:
        console.print(f"[yellow]Enabled but not available: {', '.join(missing)}[/yellow]")
