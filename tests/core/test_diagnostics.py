"""Tests for diagnostic sinks."""

from __future__ import annotations

import logging

import pytest

from tabular_memory.core.diagnostics import (
    CollectingSink,
    Diagnostic,
    DiagnosticCode,
    FanOutSink,
    LoggingSink,
    report,
)


def test_invalid_level_rejected():
    with pytest.raises(ValueError, match="Invalid level"):
        Diagnostic(DiagnosticCode.MALFORMED_INPUT, "bad", level="fatal")


class TestCollectingSink:
    def test_counts_by_code(self):
        sink = CollectingSink()
        report(sink, DiagnosticCode.UNKNOWN_FILTER_FIELD, "a", field="x")
        report(sink, DiagnosticCode.UNKNOWN_FILTER_FIELD, "b", field="y")
        report(sink, DiagnosticCode.DECODE_AMBIGUITY, "c")
        assert len(sink) == 3
        assert sink.counts() == {"unknown_filter_field": 2, "decode_ambiguity": 1}
        assert [d.fields["field"] for d in sink.by_code(DiagnosticCode.UNKNOWN_FILTER_FIELD)] == ["x", "y"]

    def test_fan_out(self):
        first, second = CollectingSink(), CollectingSink()
        report(FanOutSink(first, second), DiagnosticCode.MALFORMED_INPUT, "m")
        assert len(first) == len(second) == 1


class TestLoggingSink:
    def test_logs_code_and_message(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tabular_memory.core.diagnostics"):
            report(LoggingSink(), DiagnosticCode.SCHEMA_PERSISTENCE_FAILURE, "store down", level="error")
        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert "[schema_persistence_failure] store down" in record.getMessage()
        assert record.diagnostic_code == "schema_persistence_failure"

    def test_report_without_sink_logs(self, caplog):
        with caplog.at_level(logging.WARNING, logger="tabular_memory.core.diagnostics"):
            diagnostic = report(None, DiagnosticCode.DECODE_AMBIGUITY, "two records")
        assert diagnostic.level == "warning"
        assert any("two records" in r.getMessage() for r in caplog.records)
