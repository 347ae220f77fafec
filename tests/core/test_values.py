"""Tests for tagged cell values and text coercion."""

from __future__ import annotations

from datetime import date, datetime

import numpy as np
import pandas as pd
import pytest

from tabular_memory.core.enums import ValueKind
from tabular_memory.core.values import TypedValue, coerce_text, format_number, parse_float


class TestFromPython:
    @pytest.mark.parametrize("missing", [None, float("nan"), np.nan, pd.NA, pd.NaT])
    def test_missing_values_are_null(self, missing):
        assert TypedValue.from_python(missing).is_null

    def test_bool_before_int(self):
        assert TypedValue.from_python(True).kind == ValueKind.BOOLEAN
        assert TypedValue.from_python(np.bool_(False)).value is False

    def test_numpy_scalars(self):
        assert TypedValue.from_python(np.int64(3)) == TypedValue.number(3)
        assert TypedValue.from_python(np.float64(2.5)) == TypedValue.number(2.5)

    def test_timestamps(self):
        value = TypedValue.from_python(pd.Timestamp("2024-01-31"))
        assert value.kind == ValueKind.DATE
        assert value.to_text() == "2024-01-31"

    def test_strings_are_not_parsed(self):
        assert TypedValue.from_python("42") == TypedValue.string("42")


class TestToText:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "True"),
            (False, "False"),
            (5.0, "5"),
            (0.1, "0.1"),
            (-12, "-12"),
            (None, "NULL"),
            (date(2024, 1, 31), "2024-01-31"),
            (datetime(2024, 1, 31, 10, 30), "2024-01-31T10:30:00"),
            ("Production", "Production"),
        ],
    )
    def test_locale_invariant_rendering(self, value, expected):
        assert TypedValue.from_python(value).to_text() == expected

    def test_large_floats_keep_repr(self):
        assert format_number(1e20) == "1e+20"


class TestCoerceText:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("true", True),
            ("FALSE", False),
            ("42", 42),
            ("-3", -3),
            ("4.5", 4.5),
            ("1e3", 1000.0),
            ("abc", "abc"),
            ("", ""),
            ("nan", "nan"),
            ("1_000", "1_000"),
        ],
    )
    def test_coercion_order(self, text, expected):
        value = coerce_text(text).to_python()
        assert value == expected
        assert type(value) is type(expected)

    def test_null_literal(self):
        assert coerce_text("NULL").is_null

    def test_parse_float_rejects_non_finite(self):
        assert parse_float("inf") is None
        assert parse_float(" 2.5 ") == 2.5


def test_null_carries_no_payload():
    with pytest.raises(ValueError):
        TypedValue(ValueKind.NULL, 1)
    with pytest.raises(ValueError):
        TypedValue(ValueKind.STRING, None)
