"""Tests for the polars-backed reference query runner."""

from __future__ import annotations

import pytest

from tabular_memory.config import FuzzyMatchConfig
from tabular_memory.ingestion.encoder import EncodingContext, encode_rows
from tabular_memory.query import FrameQueryRunner, build_predicate, documents_to_frame
from tabular_memory.query.frame import like_to_regex


@pytest.fixture
def documents(server_rows):
    context = EncodingContext("Servers", 2, dataset_name="servers", schema_id="s1", import_batch_id="b1")
    return [c.to_document() for c in encode_rows(server_rows, context)]


@pytest.fixture
def runner(documents):  # pylint: disable=redefined-outer-name
    return FrameQueryRunner(documents)


def _names(matches):
    return [m["text"].split("Server_Name is ")[1].split(".")[0] for m in matches]


class TestFrame:
    def test_columns(self, documents):  # pylint: disable=redefined-outer-name
        frame = documents_to_frame(documents)
        assert frame.height == 4
        assert {"source_name", "row_number", "dataset_name", "data.Server_Name", "data.Owner"} <= set(frame.columns)
        assert frame.get_column("data.Owner").to_list() == ["ops", None, "dba", "web"]

    def test_empty_documents(self):
        assert FrameQueryRunner([]).run_query(build_predicate({}).predicate) == []

    @pytest.mark.parametrize("pattern,expected", [("%foo_", "^.*foo.$"), ("a.b", "^a\\.b$"), ("web-01 a%", "^web\\-01 a.*$")])
    def test_like_to_regex(self, pattern, expected):
        assert like_to_regex(pattern) == expected


class TestRunQuery:
    def test_exact_and_or(self, runner):  # pylint: disable=redefined-outer-name
        predicate = build_predicate({"data.environment": ["production", "Staging"], "data.active": "true"}).predicate
        assert _names(runner.run_query(predicate)) == ["SVR01", "SVR03"]

    def test_empty_predicate_and_limit(self, runner):  # pylint: disable=redefined-outer-name
        assert len(runner.run_query(build_predicate({}).predicate)) == 4
        assert len(runner.run_query(build_predicate({}).predicate, limit=2)) == 2

    def test_case_sensitive(self, runner):  # pylint: disable=redefined-outer-name
        fuzzy = FuzzyMatchConfig(case_insensitive=False)
        assert runner.run_query(build_predicate({"data.environment": "production"}, fuzzy).predicate) == []
        assert len(runner.run_query(build_predicate({"data.environment": "Production"}, fuzzy).predicate)) == 2

    def test_tag_fields(self, runner):  # pylint: disable=redefined-outer-name
        predicate = build_predicate({"Row_Number": "3", "dataset_name": "SERVERS"}).predicate
        assert _names(runner.run_query(predicate)) == ["SVR02"]

    def test_wildcard(self, runner):  # pylint: disable=redefined-outer-name
        predicate = build_predicate({"data.server_name": "svr%"}).predicate
        assert _names(runner.run_query(predicate)) == ["SVR01", "SVR02", "SVR03"]

    def test_fuzzy_contains(self, runner, fuzzy_contains, servers_schema):  # pylint: disable=redefined-outer-name
        predicate = build_predicate({"data.environment": "prod"}, fuzzy_contains, servers_schema).predicate
        assert _names(runner.run_query(predicate)) == ["SVR01", "SVR03"]

    def test_fuzzy_like(self, runner, servers_schema):  # pylint: disable=redefined-outer-name
        fuzzy = FuzzyMatchConfig(enabled=True, operator="LIKE")
        predicate = build_predicate({"data.server_name": "eb-"}, fuzzy, servers_schema).predicate
        assert _names(runner.run_query(predicate)) == ["web-01"]

    def test_numbers_compare_as_text(self, runner):  # pylint: disable=redefined-outer-name
        assert _names(runner.run_query(build_predicate({"data.cpu_cores": "16"}).predicate)) == ["SVR03"]

    def test_unknown_field_matches_nothing(self, runner):  # pylint: disable=redefined-outer-name
        assert runner.run_query(build_predicate({"data.colour": "red"}).predicate) == []

    def test_null_values_never_match(self, runner):  # pylint: disable=redefined-outer-name
        assert runner.run_query(build_predicate({"data.owner": "NULL"}).predicate) == []
