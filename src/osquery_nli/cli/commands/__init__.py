"""CLI command implementations."""

from osquery_nli.cli.commands import (
    ask,
    connection,
    favorites,
    history,
    schedule,
    scheduler,
    tables,
)

__all__ = [
    "ask",
    "connection",
    "favorites",
    "history",
    "schedule",
    "scheduler",
    "tables",
]
