"""Main CLI application entry point."""

from __future__ import annotations

import typer

from osquery_nli.cli.commands import (
    ask,
    connection,
    favorites,
    history,
    schedule,
    scheduler,
    tables,
)

app = typer.Typer(
    name="osquery-nli",
    help="Ask questions about this machine in natural language, answered with osquery.",
    no_args_is_help=True,
)

# Register commands
app.command()(ask.ask)
app.command()(tables.tables)
app.command("test-connection")(connection.test_connection)
app.command()(history.history)
app.command()(scheduler.scheduler)
app.add_typer(schedule.app, name="schedule")
app.add_typer(favorites.app, name="favorites")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
