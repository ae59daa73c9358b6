"""Ask command - answer questions about this machine in natural language."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.table import Table as RichTable

from osquery_nli.cli.common import VerboseOption, console, get_app, run_async, setup_logging
from osquery_nli.core.errors import OsqueryNLIError
from osquery_nli.core.models import QueryResult
from osquery_nli.pipeline import QueryPipeline

MAX_DISPLAY_ROWS = 50

EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit"}


def ask(
    question: Annotated[
        str | None,
        typer.Argument(
            help="Natural language question about this machine. Omit to start a session",
        ),
    ] = None,
    refresh: Annotated[
        bool,
        typer.Option(
            "--refresh",
            help="Never answer from the session's cache; run every question again",
        ),
    ] = False,
    show_sql: Annotated[
        bool,
        typer.Option(
            "--show-sql",
            help="Show the generated SQL",
        ),
    ] = False,
    raw: Annotated[
        bool,
        typer.Option(
            "--raw",
            help="Print the result rows without the summary",
        ),
    ] = False,
    verbose: VerboseOption = 0,
) -> None:
    """Ask a question about this machine.

    The question is translated into osquery SQL, executed locally and the
    rows are summarized in plain language. Without a QUESTION an interactive
    session starts; repeated questions in a session are answered from the
    result cache. Type /clear to empty the cache and exit to leave.

    Examples:

        osquery-nli ask "Is the firewall enabled?"

        osquery-nli ask "Which apps start at login?" --show-sql

        osquery-nli ask
    """
    setup_logging(verbosity=verbose)
    app = get_app()
    pipeline = app.pipeline()

    if question is None:
        run_async(app, _session(pipeline, refresh=refresh, show_sql=show_sql, raw=raw))
        return

    try:
        result = run_async(app, pipeline.run(question, force_refresh=refresh))
    except OsqueryNLIError as e:
        console.print(f"[red]Error: {e.user_message}[/red]")
        raise typer.Exit(1) from e
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1) from e

    _print_result(result, show_sql=show_sql, raw=raw)


async def _session(pipeline: QueryPipeline, refresh: bool, show_sql: bool, raw: bool) -> None:
    """Read questions until exit or end of input, reusing one pipeline."""
    console.print("[bold]osquery-nli[/bold] [dim](exit to leave, /clear to empty the cache)[/dim]")
    while True:
        try:
            line = await asyncio.to_thread(console.input, "[bold cyan]?[/bold cyan] ")
        except EOFError:
            break
        text = line.strip()
        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break
        if text == "/clear":
            pipeline.clear_cache()
            console.print("[dim]Cache cleared[/dim]")
            continue

        try:
            result = await pipeline.run(text, force_refresh=refresh)
        except OsqueryNLIError as e:
            console.print(f"[red]Error: {e.user_message}[/red]")
            continue
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            continue
        _print_result(result, show_sql=show_sql, raw=raw)


def _print_result(result: QueryResult, show_sql: bool, raw: bool) -> None:
    if not raw and result.summary:
        console.print(f"\n{result.summary}\n")

    if result.rows:
        data_table = RichTable(show_header=True, header_style="bold")
        for col in result.columns:
            data_table.add_column(col)
        for row in result.rows[:MAX_DISPLAY_ROWS]:
            data_table.add_row(*[row.get(c, "") for c in result.columns])
        console.print(data_table)

        if result.row_count > MAX_DISPLAY_ROWS:
            console.print(f"[dim]... showing {MAX_DISPLAY_ROWS} of {result.row_count} rows[/dim]")
    else:
        console.print("[yellow]No rows returned[/yellow]")

    if show_sql:
        console.print("\n[bold]Generated SQL:[/bold]")
        console.print(f"[dim]{result.sql}[/dim]")

    footer = f"{result.row_count} rows in {result.execution_time:.2f}s"
    if result.token_usage is not None:
        footer += f", {result.token_usage.total_tokens} tokens"
    console.print(f"\n[dim]{footer}[/dim]")
