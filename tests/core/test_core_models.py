"""Tests for core models and value stringification."""

import pytest

from osquery_nli.core.models import QueryResult, Result, TokenUsage, stringify_rows, stringify_value


class TestResult:
    def test_ok(self):
        result = Result.ok("connected")
        assert result.success
        assert result.unwrap() == "connected"

    def test_fail(self):
        result: Result[str] = Result.fail("Invalid API key")
        assert not result.success
        with pytest.raises(ValueError, match="Invalid API key"):
            result.unwrap()

    def test_map(self):
        assert Result.ok(2).map(lambda v: v * 2).value == 4
        assert not Result.fail("nope").map(lambda v: v).success


class TestTokenUsage:
    def test_addition(self):
        total = TokenUsage(input_tokens=10, output_tokens=2) + TokenUsage(
            input_tokens=5, output_tokens=3
        )
        assert (total.input_tokens, total.output_tokens, total.total_tokens) == (15, 5, 20)

    def test_combine_skips_missing(self):
        combined = TokenUsage.combine(None, TokenUsage(input_tokens=1, output_tokens=1))
        assert combined == TokenUsage(input_tokens=1, output_tokens=1)
        assert TokenUsage.combine(None, None) is None


class TestStringify:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, ""),
            ("text", "text"),
            (True, "1"),
            (False, "0"),
            (42, "42"),
            (1.5, "1.5"),
            ({"b": 1, "a": [1, 2]}, '{"a": [1, 2], "b": 1}'),
        ],
    )
    def test_values(self, value, expected: str):
        assert stringify_value(value) == expected

    def test_rows(self):
        assert stringify_rows([{"pid": 1, "name": None}]) == [{"pid": "1", "name": ""}]


class TestQueryResult:
    def test_columns_inferred_from_first_row(self):
        result = QueryResult(sql="SELECT 1", rows=[{"b": "2", "a": "1"}])
        assert result.columns == ["a", "b"]
        assert result.row_count == 1
        assert not result.is_empty

    def test_explicit_columns_are_kept(self):
        result = QueryResult(sql="SELECT 1", rows=[{"b": "2", "a": "1"}], columns=["b", "a"])
        assert result.columns == ["b", "a"]

    def test_empty(self):
        result = QueryResult(sql="SELECT 1")
        assert result.is_empty
        assert result.columns == []
