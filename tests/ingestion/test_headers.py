"""Tests for header normalization."""

from __future__ import annotations

import pytest

from tabular_memory.core.diagnostics import DiagnosticCode
from tabular_memory.ingestion.headers import clean_identifier, normalize_header, normalize_headers


class TestNormalizeHeader:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Server Name", "Server_Name"),
            ("Unit Price ($)", "Unit_Price"),
            ("  CPU -- Cores  ", "CPU_Cores"),
            ("already_clean", "already_clean"),
            ("__private__", "private"),
            (2024, "2024"),
        ],
    )
    def test_character_rule(self, raw, expected):
        assert normalize_header(raw, 0) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "$$$", None, float("nan")])
    def test_placeholder_uses_one_based_index(self, raw):
        assert normalize_header(raw, 2) == "Column3"

    def test_custom_prefix(self):
        assert normalize_header("", 0, prefix="Field") == "Field1"

    def test_clean_identifier_may_be_empty(self):
        assert clean_identifier("%%") == ""

    @pytest.mark.parametrize(
        "raw",
        ["Server Name", "Unit Price ($)", "  CPU -- Cores  ", "already_clean", "__private__", 2024]
        + ["", "   ", "$$$", None, float("nan")]
        + normalize_headers(["Name", "Name", "Total Cost", "Total-Cost", "", None]),
    )
    def test_idempotent(self, raw):
        once = normalize_header(raw, 4)
        assert normalize_header(once, 4) == once


class TestNormalizeHeaders:
    def test_duplicates_get_suffixes(self):
        assert normalize_headers(["Name", "Name", "name", "Name"]) == ["Name", "Name_2", "name", "Name_3"]

    def test_suffix_skips_taken_names(self):
        assert normalize_headers(["Name_2", "Name", "Name"]) == ["Name_2", "Name", "Name_3"]

    def test_normalized_collisions(self):
        assert normalize_headers(["Total Cost", "Total-Cost"]) == ["Total_Cost", "Total_Cost_2"]

    def test_empty_headers_reported(self, diagnostics):
        names = normalize_headers(["A", None, " "], diagnostics=diagnostics)
        assert names == ["A", "Column2", "Column3"]
        reported = diagnostics.by_code(DiagnosticCode.MALFORMED_INPUT)
        assert [d.fields["column"] for d in reported] == [2, 3]
        assert all(d.level == "debug" for d in reported)

    def test_without_normalization(self):
        assert normalize_headers([" Server Name ", "", "Server Name"], normalize=False) == [
            "Server Name",
            "Column2",
            "Server Name_2",
        ]
