"""History command - show or clear the query history."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table as RichTable

from osquery_nli.cli.common import console, get_app
from osquery_nli.history import QuerySource


def history(
    clear: Annotated[
        bool,
        typer.Option(
            "--clear",
            help="Delete the history instead of showing it",
        ),
    ] = False,
    source: Annotated[
        QuerySource | None,
        typer.Option(
            "--source",
            "-s",
            help="Only entries from this source",
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Number of entries to show",
        ),
    ] = 20,
) -> None:
    """Show recent questions, newest first."""
    app = get_app()

    if clear:
        app.history.clear_entries(source)
        console.print("[green]History cleared[/green]")
        return

    entries = app.history.read_entries(source)
    if not entries:
        console.print("[yellow]No queries in history[/yellow]")
        return

    table = RichTable(show_header=True, header_style="bold")
    table.add_column("When")
    table.add_column("Source")
    table.add_column("Rows", justify="right")
    table.add_column("Query")
    for entry in entries[:limit]:
        table.add_row(
            entry.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
            entry.source.value,
            "" if entry.row_count is None else str(entry.row_count),
            entry.query,
        )
    console.print(table)
