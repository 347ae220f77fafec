"""Tests for predicate building."""

from __future__ import annotations

from tabular_memory.config import FuzzyMatchConfig
from tabular_memory.core.diagnostics import DiagnosticCode
from tabular_memory.core.enums import MatchKind
from tabular_memory.query import build_predicate
from tabular_memory.query.predicate import has_wildcard


def _kinds(build):
    return [c.kind for clause in build.predicate.clauses for c in clause.comparisons]


class TestExactMatching:
    def test_and_of_or_groups(self):
        build = build_predicate({"data.env": "Production", "project": ["a", "b"]})
        assert build.predicate.describe() == "(env == Production) AND (project == a OR project == b)"
        assert build.warnings == []

    def test_empty_spec_matches_everything(self):
        predicate = build_predicate({}).predicate
        assert predicate.is_empty
        assert predicate.describe() == "TRUE"

    def test_default_is_case_insensitive(self):
        assert _kinds(build_predicate({"data.env": "prod", "project": "a"})) == [
            MatchKind.CASE_INSENSITIVE_EXACT,
            MatchKind.CASE_INSENSITIVE_EXACT,
        ]

    def test_case_sensitive_data_fields(self):
        build = build_predicate({"data.env": "prod", "project": "a"}, FuzzyMatchConfig(case_insensitive=False))
        assert _kinds(build) == [MatchKind.EXACT, MatchKind.CASE_INSENSITIVE_EXACT]

    def test_to_dict(self):
        assert build_predicate({"project": "a"}).predicate.to_dict() == {
            "and": [{"or": [{"field": "project", "kind": "case_insensitive_exact", "value": "a", "case_insensitive": True}]}]
        }


class TestWildcards:
    def test_wildcard_forces_like(self):
        build = build_predicate({"data.server": "SVR%", "source_name": "Sheet_"})
        assert _kinds(build) == [MatchKind.FUZZY_LIKE, MatchKind.FUZZY_LIKE]
        assert build.predicate.describe() == "(server LIKE SVR%) AND (source_name LIKE Sheet_)"

    def test_has_wildcard(self):
        assert has_wildcard("a%")
        assert has_wildcard("a_b")
        assert not has_wildcard("ab")


class TestFuzzyMatching:
    def test_contains_on_string_field(self, fuzzy_contains, servers_schema):
        build = build_predicate({"data.environment": "Prod"}, fuzzy_contains, servers_schema)
        assert build.predicate.describe() == "(Environment CONTAINS Prod)"

    def test_like_operator_wraps_value(self, servers_schema):
        fuzzy = FuzzyMatchConfig(enabled=True, operator="LIKE")
        build = build_predicate({"data.environment": "Prod"}, fuzzy, servers_schema)
        (comparison,) = build.predicate.clauses[0].comparisons
        assert comparison.kind == MatchKind.FUZZY_LIKE
        assert comparison.value == "%Prod%"

    def test_non_string_columns_stay_exact(self, fuzzy_contains, servers_schema):
        build = build_predicate({"data.cpu_cores": "8", "data.active": "true"}, fuzzy_contains, servers_schema)
        assert _kinds(build) == [MatchKind.CASE_INSENSITIVE_EXACT, MatchKind.CASE_INSENSITIVE_EXACT]

    def test_short_values_stay_exact(self, servers_schema):
        fuzzy = FuzzyMatchConfig(enabled=True, minimum_length=3)
        build = build_predicate({"data.environment": ["Pr", "Prod"]}, fuzzy, servers_schema)
        assert _kinds(build) == [MatchKind.CASE_INSENSITIVE_EXACT, MatchKind.FUZZY_CONTAINS]

    def test_tags_are_never_fuzzy(self, fuzzy_contains):
        assert _kinds(build_predicate({"source_name": "Servers"}, fuzzy_contains)) == [
            MatchKind.CASE_INSENSITIVE_EXACT
        ]

    def test_unknown_type_counts_as_string(self, fuzzy_contains):
        assert _kinds(build_predicate({"data.anything": "abc"}, fuzzy_contains)) == [MatchKind.FUZZY_CONTAINS]


class TestSchemaResolution:
    def test_fields_resolve_to_stored_names(self, servers_schema):
        build = build_predicate({"data.serverName": "SVR01", "data.CPU Cores": "8"}, schema=servers_schema)
        assert [ref.path for ref in build.predicate.fields()] == ["data.Server_Name", "data.CPU_Cores"]
        assert build.warnings == []

    def test_unknown_field_warns_and_still_applies(self, servers_schema, diagnostics):
        build = build_predicate({"data.colour": "red"}, schema=servers_schema, diagnostics=diagnostics)
        assert build.warnings == ["Field 'colour' not found in schema for dataset 'servers'."]
        assert build.predicate.describe() == "(colour == red)"
        (diagnostic,) = diagnostics.by_code(DiagnosticCode.UNKNOWN_FILTER_FIELD)
        assert diagnostic.fields == {"field": "colour", "dataset": "servers"}

    def test_tags_not_checked_against_schema(self, servers_schema, diagnostics):
        build = build_predicate({"source_name": "Servers"}, schema=servers_schema, diagnostics=diagnostics)
        assert build.warnings == []
        assert len(diagnostics) == 0
