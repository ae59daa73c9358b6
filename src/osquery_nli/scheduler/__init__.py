"""Scheduled queries: models, alert rules and persistence.

The service that runs them lives in ``osquery_nli.scheduler.service``.
"""

from osquery_nli.scheduler.alerts import (
    AlertCondition,
    AlertRule,
    AnyResults,
    ContainsValue,
    NoResults,
    RowCountEquals,
    RowCountGreaterThan,
    RowCountLessThan,
    RowCountNotEquals,
    condition_display_name,
    evaluate_condition,
)
from osquery_nli.scheduler.models import (
    ScheduledQuery,
    ScheduledQueryResult,
    ScheduleInterval,
    create_summary,
)
from osquery_nli.scheduler.queries import ScheduledQueryStore
from osquery_nli.scheduler.store import ScheduledQueryResultStore

__all__ = [
    "AlertCondition",
    "AlertRule",
    "AnyResults",
    "ContainsValue",
    "NoResults",
    "RowCountEquals",
    "RowCountGreaterThan",
    "RowCountLessThan",
    "RowCountNotEquals",
    "ScheduleInterval",
    "ScheduledQuery",
    "ScheduledQueryResult",
    "ScheduledQueryResultStore",
    "ScheduledQueryStore",
    "condition_display_name",
    "create_summary",
    "evaluate_condition",
]
