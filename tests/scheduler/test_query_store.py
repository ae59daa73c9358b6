"""Tests for scheduled query persistence."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from osquery_nli.scheduler.alerts import AlertRule, AnyResults
from osquery_nli.scheduler.models import ScheduledQuery, ScheduledQueryResult
from osquery_nli.scheduler.queries import QUERIES_FILENAME, ScheduledQueryStore
from osquery_nli.scheduler.store import RESULTS_FILENAME, ScheduledQueryResultStore


@pytest.fixture
def results(tmp_path: Path) -> ScheduledQueryResultStore:
    return ScheduledQueryResultStore(tmp_path / RESULTS_FILENAME)


@pytest.fixture
def queries(tmp_path: Path, results: ScheduledQueryResultStore) -> ScheduledQueryStore:
    return ScheduledQueryStore(tmp_path / QUERIES_FILENAME, results)


def make_query(name: str, query_id: str | None = None) -> ScheduledQuery:
    query = ScheduledQuery(name=name, text=f"{name}?")
    return query.model_copy(update={"id": query_id}) if query_id else query


class TestScheduledQueryStore:
    def test_add_keeps_order(self, queries: ScheduledQueryStore):
        queries.add(make_query("first"))
        queries.add(make_query("second"))
        assert [q.name for q in queries.all()] == ["first", "second"]

    def test_duplicate_id(self, queries: ScheduledQueryStore):
        query = queries.add(make_query("first"))
        with pytest.raises(ValueError, match="already exists"):
            queries.add(query)

    def test_update(self, queries: ScheduledQueryStore):
        query = queries.add(make_query("first"))
        assert queries.update(query.model_copy(update={"last_result_count": 4}))
        assert queries.get(query.id).last_result_count == 4

    def test_record_run_keeps_other_fields(self, queries: ScheduledQueryStore):
        query = queries.add(
            make_query("first").model_copy(
                update={"alert_rule": AlertRule(condition=AnyResults())}
            )
        )
        queries.set_enabled(query.id, False)
        ran_at = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

        stored = queries.record_run(
            query.id, ran_at, last_result_count=3, last_triggered=ran_at
        )

        assert stored == queries.get(query.id)
        assert not stored.enabled
        assert (stored.last_run, stored.last_result_count) == (ran_at, 3)
        assert stored.alert_rule.last_triggered == ran_at

    def test_record_run_of_removed_query(self, queries: ScheduledQueryStore):
        assert queries.record_run("missing", datetime.now(UTC)) is None
        assert queries.all() == []

    def test_update_of_removed_query(self, queries: ScheduledQueryStore):
        query = make_query("ghost")
        assert not queries.update(query)
        assert queries.all() == []

    def test_remove_clears_results(
        self, queries: ScheduledQueryStore, results: ScheduledQueryResultStore
    ):
        query = queries.add(make_query("first"))
        results.save_result(ScheduledQueryResult.failed(query.id, "boom"))

        assert queries.remove(query.id)
        assert queries.get(query.id) is None
        assert results.get_results(query.id) == []
        assert not queries.remove(query.id)

    def test_set_enabled(self, queries: ScheduledQueryStore):
        query = queries.add(make_query("first"))
        updated = queries.set_enabled(query.id, False)
        assert updated is not None
        assert not queries.get(query.id).enabled
        assert queries.set_enabled("missing", True) is None

    def test_find_by_name_id_or_prefix(self, queries: ScheduledQueryStore):
        queries.add(make_query("firewall", "abc-111"))
        queries.add(make_query("login items", "abd-222"))

        assert queries.find("firewall").id == "abc-111"
        assert queries.find("abd-222").name == "login items"
        assert queries.find("abc").name == "firewall"
        # ambiguous prefix
        assert queries.find("ab") is None
        assert queries.find("zzz") is None
