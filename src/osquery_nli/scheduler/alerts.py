"""Alert conditions and rules for scheduled queries.

Conditions are a pydantic discriminated union on ``kind`` so they round-trip
through scheduled_queries.json. Evaluation is a pure function of the rows.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Annotated, Literal, assert_never

from pydantic import BaseModel, Field

from osquery_nli.core.models import Row


class AnyResults(BaseModel):
    kind: Literal["any_results"] = "any_results"


class NoResults(BaseModel):
    kind: Literal["no_results"] = "no_results"


class RowCountGreaterThan(BaseModel):
    kind: Literal["row_count_gt"] = "row_count_gt"
    threshold: int


class RowCountLessThan(BaseModel):
    kind: Literal["row_count_lt"] = "row_count_lt"
    threshold: int


class RowCountEquals(BaseModel):
    kind: Literal["row_count_eq"] = "row_count_eq"
    threshold: int


class RowCountNotEquals(BaseModel):
    kind: Literal["row_count_ne"] = "row_count_ne"
    threshold: int


class ContainsValue(BaseModel):
    """Some row's ``column`` contains ``value`` (case-insensitive)."""

    kind: Literal["contains_value"] = "contains_value"
    column: str
    value: str


AlertCondition = Annotated[
    AnyResults
    | NoResults
    | RowCountGreaterThan
    | RowCountLessThan
    | RowCountEquals
    | RowCountNotEquals
    | ContainsValue,
    Field(discriminator="kind"),
]


def evaluate_condition(condition: AlertCondition, rows: list[Row]) -> bool:
    """Return True if ``rows`` satisfy ``condition``."""
    count = len(rows)
    match condition:
        case AnyResults():
            return count > 0
        case NoResults():
            return count == 0
        case RowCountGreaterThan(threshold=n):
            return count > n
        case RowCountLessThan(threshold=n):
            return count < n
        case RowCountEquals(threshold=n):
            return count == n
        case RowCountNotEquals(threshold=n):
            return count != n
        case ContainsValue(column=column, value=value):
            needle = value.casefold()
            return any(column in row and needle in str(row[column]).casefold() for row in rows)
        case _:
            assert_never(condition)


def condition_display_name(condition: AlertCondition) -> str:
    match condition:
        case AnyResults():
            return "Any results found"
        case NoResults():
            return "No results"
        case RowCountGreaterThan(threshold=n):
            return f"More than {n} results"
        case RowCountLessThan(threshold=n):
            return f"Fewer than {n} results"
        case RowCountEquals(threshold=n):
            return f"Exactly {n} results"
        case RowCountNotEquals(threshold=n):
            return f"Not {n} results"
        case ContainsValue(column=column, value=value):
            return f"{column} contains '{value}'"
        case _:
            assert_never(condition)


class AlertRule(BaseModel):
    """When to notify about a scheduled query's results."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    condition: AlertCondition
    notify_on_match: bool = True
    notify_on_change: bool = False
    last_triggered: datetime | None = None

    def should_alert(self, rows: list[Row], previous_count: int | None) -> bool:
        """Fire on a condition match, or on a row-count change since the previous run."""
        if self.notify_on_match and evaluate_condition(self.condition, rows):
            return True
        return self.notify_on_change and previous_count is not None and previous_count != len(rows)
