"""Tests for pipeline stages and statement execution."""

import pytest
from conftest import FakeInventory

from osquery_nli.core.cancellation import CancelToken
from osquery_nli.core.errors import QueryCancelledError
from osquery_nli.core.logging import RunMetrics
from osquery_nli.pipeline import PipelineRun, PipelineStage, Question, execute_statements, split_statements


def _run() -> PipelineRun:
    return PipelineRun(question=Question(text="uptime?", tables=frozenset({"uptime"})))


class TestSplitStatements:
    def test_drops_empty_statements(self):
        assert split_statements(" SELECT 1 ;; SELECT 2;  ") == ["SELECT 1", "SELECT 2"]

    def test_blank(self):
        assert split_statements(" ; ") == []


class TestExecuteStatements:
    async def test_rows_are_concatenated_in_order(self):
        inventory = FakeInventory(
            rows={"SELECT 1": [{"a": "1"}], "SELECT 2": [{"a": "2"}, {"a": "3"}]}
        )
        metrics = RunMetrics(run_id="r1")

        rows = await execute_statements(inventory, "SELECT 1; SELECT 2", metrics=metrics)

        assert rows == [{"a": "1"}, {"a": "2"}, {"a": "3"}]
        assert inventory.executed == ["SELECT 1", "SELECT 2"]
        assert metrics.statements_executed == 2
        assert metrics.rows_returned == 3

    async def test_cancelled_token_stops_before_execution(self):
        inventory = FakeInventory()
        token = CancelToken()
        token.cancel()

        with pytest.raises(QueryCancelledError):
            await execute_statements(inventory, "SELECT 1", cancel_token=token)
        assert inventory.executed == []


class TestPipelineRun:
    def test_advance_records_previous_stage_timing(self):
        run = _run()
        run.advance(PipelineStage.TRANSLATING)
        run.advance(PipelineStage.EXECUTING)
        run.finish()

        assert run.stage == PipelineStage.IDLE
        assert set(run.metrics.timings) == {"translating", "executing"}

    def test_advance_after_cancel_raises(self):
        run = _run()
        run.cancel_token.cancel()

        with pytest.raises(QueryCancelledError):
            run.advance(PipelineStage.TRANSLATING)
        assert run.stage == PipelineStage.IDLE
