"""Schedule commands - manage scheduled queries and inspect their results."""

from __future__ import annotations

from typing import Annotated, Any

import typer
from pydantic import TypeAdapter, ValidationError
from rich.table import Table as RichTable

from osquery_nli.cli.common import (
    AppContext,
    VerboseOption,
    console,
    get_app,
    run_async,
    setup_logging,
)
from osquery_nli.core.errors import InvalidSQLError
from osquery_nli.inventory import validate_sql
from osquery_nli.scheduler.alerts import AlertCondition, AlertRule, condition_display_name
from osquery_nli.scheduler.models import ScheduledQuery, ScheduleInterval

app = typer.Typer(
    name="schedule",
    help="Manage scheduled queries.",
    no_args_is_help=True,
)

_condition_adapter = TypeAdapter(AlertCondition)

QueryRefArg = Annotated[
    str,
    typer.Argument(
        help="Scheduled query id, unique id prefix, or name",
    ),
]


def _resolve(ctx: AppContext, ref: str) -> ScheduledQuery:
    query = ctx.queries.find(ref)
    if query is None:
        console.print(f"[red]No scheduled query matches '{ref}'[/red]")
        raise typer.Exit(1)
    return query


def _build_rule(
    kind: str, threshold: int | None, column: str | None, value: str | None, on_change: bool
) -> AlertRule:
    data: dict[str, Any] = {"kind": kind}
    if threshold is not None:
        data["threshold"] = threshold
    if column is not None:
        data["column"] = column
    if value is not None:
        data["value"] = value
    try:
        condition = _condition_adapter.validate_python(data)
    except ValidationError as e:
        console.print(f"[red]Invalid alert condition '{kind}':[/red]")
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            console.print(f"  {location}: {error['msg']}")
        raise typer.Exit(1) from e
    return AlertRule(condition=condition, notify_on_change=on_change)


@app.command("list")
def list_queries() -> None:
    """List scheduled queries."""
    ctx = get_app()
    queries = ctx.queries.all()
    if not queries:
        console.print("[yellow]No scheduled queries[/yellow]")
        return

    table = RichTable(show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Interval")
    table.add_column("Enabled", justify="center")
    table.add_column("Last run")
    table.add_column("Rows", justify="right")
    table.add_column("Alert")
    for query in queries:
        table.add_row(
            query.id[:8],
            query.name,
            query.interval.display_name,
            "[green]✓[/green]" if query.enabled else "[dim]-[/dim]",
            query.last_run.astimezone().strftime("%Y-%m-%d %H:%M") if query.last_run else "never",
            "" if query.last_result_count is None else str(query.last_result_count),
            condition_display_name(query.alert_rule.condition) if query.alert_rule else "",
        )
    console.print(table)


@app.command()
def add(
    name: Annotated[str, typer.Argument(help="Display name")],
    text: Annotated[str, typer.Argument(help="Question, or SQL with --sql")],
    sql: Annotated[
        bool,
        typer.Option("--sql", help="TEXT is osquery SQL; skip translation"),
    ] = False,
    interval: Annotated[
        ScheduleInterval,
        typer.Option("--interval", "-i", help="How often to run"),
    ] = ScheduleInterval.HOURLY,
    alert: Annotated[
        str | None,
        typer.Option(
            "--alert",
            "-a",
            help=(
                "Alert condition: any_results, no_results, row_count_gt, row_count_lt, "
                "row_count_eq, row_count_ne, contains_value"
            ),
        ),
    ] = None,
    threshold: Annotated[
        int | None,
        typer.Option("--threshold", help="Row count for the row_count_* conditions"),
    ] = None,
    column: Annotated[
        str | None,
        typer.Option("--column", help="Column for contains_value"),
    ] = None,
    value: Annotated[
        str | None,
        typer.Option("--value", help="Substring for contains_value"),
    ] = None,
    notify_on_change: Annotated[
        bool,
        typer.Option("--notify-on-change", help="Also alert when the row count changes"),
    ] = False,
) -> None:
    """Add a scheduled query.

    Examples:

        osquery-nli schedule add "Login items" "Which apps start at login?" -i daily -a any_results

        osquery-nli schedule add "Firewall" "SELECT global_state FROM alf" --sql \\
            -a contains_value --column global_state --value 0
    """
    ctx = get_app()
    query_text = text.strip()
    if sql:
        try:
            query_text = validate_sql(query_text)
        except InvalidSQLError as e:
            console.print(f"[red]{e.user_message}[/red]")
            raise typer.Exit(1) from e

    rule = _build_rule(alert, threshold, column, value, notify_on_change) if alert else None
    query = ctx.queries.add(
        ScheduledQuery(
            name=name, text=query_text, is_raw_sql=sql, interval=interval, alert_rule=rule
        )
    )
    console.print(f"[green]Scheduled '{query.name}' ({query.interval.display_name})[/green]")
    console.print(f"[dim]{query.id}[/dim]")


@app.command()
def remove(ref: QueryRefArg) -> None:
    """Remove a scheduled query and its stored results."""
    ctx = get_app()
    query = _resolve(ctx, ref)
    ctx.queries.remove(query.id)
    console.print(f"[green]Removed '{query.name}'[/green]")


@app.command()
def enable(ref: QueryRefArg) -> None:
    """Enable a scheduled query."""
    _set_enabled(ref, True)


@app.command()
def disable(ref: QueryRefArg) -> None:
    """Disable a scheduled query without deleting it."""
    _set_enabled(ref, False)


def _set_enabled(ref: str, enabled: bool) -> None:
    ctx = get_app()
    query = _resolve(ctx, ref)
    ctx.queries.set_enabled(query.id, enabled)
    state = "enabled" if enabled else "disabled"
    console.print(f"[green]'{query.name}' {state}[/green]")


@app.command()
def run(ref: QueryRefArg, verbose: VerboseOption = 0) -> None:
    """Run a scheduled query now, regardless of its interval."""
    setup_logging(verbosity=verbose)
    ctx = get_app()
    query = _resolve(ctx, ref)

    result = run_async(ctx, ctx.scheduler().run_now(query.id))
    if result is None:
        console.print(f"[red]'{query.name}' was removed[/red]")
        raise typer.Exit(1)
    if result.error:
        console.print(f"[red]Failed: {result.error}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]{result.row_count} rows[/green]")
    if result.alert_triggered:
        console.print("[bold yellow]Alert triggered[/bold yellow]")
    if result.result_summary:
        console.print(result.result_summary)


@app.command()
def results(
    ref: QueryRefArg,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of results")] = 20,
) -> None:
    """Show stored results of a scheduled query, newest first."""
    ctx = get_app()
    query = _resolve(ctx, ref)
    stored = ctx.results.get_results(query.id, limit=limit)
    if not stored:
        console.print(f"[yellow]No results for '{query.name}'[/yellow]")
        return

    table = RichTable(show_header=True, header_style="bold")
    table.add_column("When")
    table.add_column("Rows", justify="right")
    table.add_column("Alert", justify="center")
    table.add_column("Summary")
    for result in stored:
        table.add_row(
            result.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            str(result.row_count),
            "[yellow]![/yellow]" if result.alert_triggered else "",
            f"[red]{result.error}[/red]" if result.error else result.result_summary or "",
        )
    console.print(table)
