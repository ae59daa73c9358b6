"""Alert notifications for scheduled queries.

Delivery goes through the ``Notifier`` protocol. The default
``LoggingNotifier`` writes alerts to the structured log; a desktop
integration only needs to implement ``deliver``.
"""

from __future__ import annotations

from typing import Protocol, assert_never

from osquery_nli.core.logging import get_logger
from osquery_nli.scheduler.alerts import (
    AlertCondition,
    AnyResults,
    ContainsValue,
    NoResults,
    RowCountEquals,
    RowCountGreaterThan,
    RowCountLessThan,
    RowCountNotEquals,
)

logger = get_logger(__name__)


class Notifier(Protocol):
    def deliver(self, title: str, body: str, correlation_id: str) -> None:
        """Show an alert. ``correlation_id`` is the scheduled query id."""
        ...


class LoggingNotifier:
    """Notifier that records alerts in the log."""

    def deliver(self, title: str, body: str, correlation_id: str) -> None:
        logger.warning("alert_notification", title=title, body=body, scheduled_query_id=correlation_id)


def alert_title(query_name: str) -> str:
    return f"Osquery Alert: {query_name}"


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def format_alert_message(condition: AlertCondition, row_count: int) -> str:
    """Notification body for a fired alert."""
    match condition:
        case AnyResults():
            return f"Found {row_count} result{_plural(row_count)}"
        case NoResults():
            return "Query returned no results"
        case RowCountGreaterThan(threshold=n):
            return f"Found {row_count} results (threshold: >{n})"
        case RowCountLessThan(threshold=n):
            return f"Found {row_count} results (threshold: <{n})"
        case RowCountEquals(threshold=n):
            return f"Found exactly {n} result{_plural(n)}"
        case RowCountNotEquals():
            return f"Result count changed to {row_count}"
        case ContainsValue(column=column, value=value):
            return f"Found {row_count} result{_plural(row_count)} where {column} contains '{value}'"
        case _:
            assert_never(condition)
