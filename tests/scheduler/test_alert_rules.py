"""Tests for alert conditions and rules."""

import pytest

from osquery_nli.notifications import alert_title, format_alert_message
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

ROWS = [
    {"name": "Google Chrome", "pid": "101"},
    {"name": "Slack", "pid": "202"},
    {"pid": "303"},
]


class TestEvaluateCondition:
    @pytest.mark.parametrize(
        ("condition", "rows", "expected"),
        [
            (AnyResults(), ROWS, True),
            (AnyResults(), [], False),
            (NoResults(), [], True),
            (NoResults(), ROWS, False),
            (RowCountGreaterThan(threshold=2), ROWS, True),
            (RowCountGreaterThan(threshold=3), ROWS, False),
            (RowCountLessThan(threshold=4), ROWS, True),
            (RowCountLessThan(threshold=3), ROWS, False),
            (RowCountEquals(threshold=3), ROWS, True),
            (RowCountEquals(threshold=2), ROWS, False),
            (RowCountNotEquals(threshold=2), ROWS, True),
            (RowCountNotEquals(threshold=3), ROWS, False),
        ],
    )
    def test_row_count_conditions(self, condition: AlertCondition, rows, expected: bool):
        assert evaluate_condition(condition, rows) is expected

    def test_contains_value_is_case_insensitive_substring(self):
        assert evaluate_condition(ContainsValue(column="name", value="CHROME"), ROWS)

    def test_contains_value_no_match(self):
        assert not evaluate_condition(ContainsValue(column="name", value="firefox"), ROWS)

    def test_rows_missing_the_column_never_match(self):
        assert not evaluate_condition(ContainsValue(column="path", value=""), ROWS)


class TestShouldAlert:
    def test_any_results_on_match(self):
        rule = AlertRule(condition=AnyResults())
        assert rule.should_alert(ROWS, previous_count=None)
        assert not rule.should_alert([], previous_count=None)

    def test_match_notifications_can_be_disabled(self):
        rule = AlertRule(condition=AnyResults(), notify_on_match=False)
        assert not rule.should_alert(ROWS, previous_count=3)

    def test_change_detection(self):
        rule = AlertRule(condition=NoResults(), notify_on_change=True)
        assert rule.should_alert(ROWS, previous_count=2)
        assert not rule.should_alert(ROWS, previous_count=3)

    def test_change_needs_a_previous_count(self):
        rule = AlertRule(condition=NoResults(), notify_on_change=True)
        assert not rule.should_alert(ROWS, previous_count=None)


class TestMessages:
    @pytest.mark.parametrize(
        ("condition", "row_count", "message"),
        [
            (AnyResults(), 1, "Found 1 result"),
            (AnyResults(), 4, "Found 4 results"),
            (NoResults(), 0, "Query returned no results"),
            (RowCountGreaterThan(threshold=5), 7, "Found 7 results (threshold: >5)"),
            (RowCountLessThan(threshold=5), 2, "Found 2 results (threshold: <5)"),
            (RowCountEquals(threshold=1), 1, "Found exactly 1 result"),
            (RowCountNotEquals(threshold=3), 4, "Result count changed to 4"),
            (
                ContainsValue(column="name", value="chrome"),
                2,
                "Found 2 results where name contains 'chrome'",
            ),
        ],
    )
    def test_format_alert_message(self, condition: AlertCondition, row_count: int, message: str):
        assert format_alert_message(condition, row_count) == message

    def test_alert_title(self):
        assert alert_title("Login items") == "Osquery Alert: Login items"

    def test_display_names(self):
        assert condition_display_name(RowCountGreaterThan(threshold=10)) == "More than 10 results"
        assert condition_display_name(ContainsValue(column="name", value="x")) == (
            "name contains 'x'"
        )
