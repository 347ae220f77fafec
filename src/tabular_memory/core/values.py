"""Tagged cell values.

Every value that flows through the encoder, the sentence parser, the type
sampler and the predicate builder is a :class:`TypedValue`: one of
``String | Number | Bool | Date | Null``. Conversions from raw Python, pandas
and numpy objects happen once, in :meth:`TypedValue.from_python`.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

import numpy as np
import pandas as pd

from tabular_memory.core.enums import ValueKind

NULL_TEXT = "NULL"

_INT_RE = re.compile(r"^[+-]?\d+$")
_NON_FINITE = {"nan", "+nan", "-nan", "inf", "+inf", "-inf", "infinity", "+infinity", "-infinity"}


def _is_missing(obj: Any) -> bool:
    if obj is None or obj is pd.NA or obj is pd.NaT:
        return True
    if isinstance(obj, float) and math.isnan(obj):
        return True
    if isinstance(obj, np.floating) and np.isnan(obj):
        return True
    return False


def format_number(number: int | float) -> str:
    """Render a number without locale, dropping a redundant ``.0``.

    Examples:
        >>> format_number(5.0)
        '5'
        >>> format_number(0.1)
        '0.1'
    """
    if isinstance(number, float):
        if number.is_integer() and abs(number) < 1e16:
            return str(int(number))
        return repr(number)
    return str(number)


def format_temporal(value: date | time) -> str:
    """ISO-8601 rendering; midnight datetimes collapse to the date part."""
    if isinstance(value, datetime):
        if value.time() == time(0, 0) and value.tzinfo is None:
            return value.date().isoformat()
        return value.isoformat()
    return value.isoformat()


@dataclass(frozen=True)
class TypedValue:
    """A cell value tagged with its variant.

    Attributes:
        kind: Which variant this is.
        value: The payload; ``None`` for :attr:`ValueKind.NULL`.
    """

    kind: ValueKind
    value: Any = None

    def __post_init__(self) -> None:
        if self.kind == ValueKind.NULL and self.value is not None:
            raise ValueError("NULL values carry no payload")
        if self.kind != ValueKind.NULL and self.value is None:
            raise ValueError(f"{self.kind.value} values require a payload")

    # ------------------------------------------------------------------ #
    # constructors
    # ------------------------------------------------------------------ #
    @classmethod
    def null(cls) -> "TypedValue":
        return cls(ValueKind.NULL)

    @classmethod
    def string(cls, text: str) -> "TypedValue":
        return cls(ValueKind.STRING, str(text))

    @classmethod
    def number(cls, number: int | float) -> "TypedValue":
        return cls(ValueKind.NUMBER, number)

    @classmethod
    def boolean(cls, flag: bool) -> "TypedValue":
        return cls(ValueKind.BOOLEAN, bool(flag))

    @classmethod
    def temporal(cls, moment: date | time) -> "TypedValue":
        return cls(ValueKind.DATE, moment)

    @classmethod
    def from_python(cls, obj: Any) -> "TypedValue":
        """Wrap a raw Python/pandas/numpy object.

        Strings stay strings: no parsing happens here. Use
        :func:`coerce_text` to interpret decoded text.

        Examples:
            >>> TypedValue.from_python(None).kind
            <ValueKind.NULL: 'null'>
            >>> TypedValue.from_python(np.int64(3))
            TypedValue(kind=<ValueKind.NUMBER: 'number'>, value=3)
        """
        if isinstance(obj, TypedValue):
            return obj
        if _is_missing(obj):
            return cls.null()
        if isinstance(obj, (bool, np.bool_)):
            return cls.boolean(bool(obj))
        if isinstance(obj, (int, np.integer)):
            return cls.number(int(obj))
        if isinstance(obj, (float, np.floating)):
            return cls.number(float(obj))
        if isinstance(obj, pd.Timestamp):
            return cls.temporal(obj.to_pydatetime())
        if isinstance(obj, (datetime, date, time)):
            return cls.temporal(obj)
        if isinstance(obj, np.datetime64):
            return cls.temporal(pd.Timestamp(obj).to_pydatetime())
        return cls.string(str(obj))

    # ------------------------------------------------------------------ #
    # accessors
    # ------------------------------------------------------------------ #
    @property
    def is_null(self) -> bool:
        return self.kind == ValueKind.NULL

    def to_text(self) -> str:
        """Locale-invariant rendering used by the canonical record text."""
        if self.kind == ValueKind.NULL:
            return NULL_TEXT
        if self.kind == ValueKind.BOOLEAN:
            return "True" if self.value else "False"
        if self.kind == ValueKind.NUMBER:
            return format_number(self.value)
        if self.kind == ValueKind.DATE:
            return format_temporal(self.value)
        return self.value

    def to_python(self) -> Any:
        """Plain Python value; dates become ISO strings for JSON safety."""
        if self.kind == ValueKind.DATE:
            return format_temporal(self.value)
        return self.value

    def __str__(self) -> str:
        return self.to_text()


def coerce_text(text: str) -> TypedValue:
    """Interpret decoded text: boolean, then integer, then float, else string.

    ``NULL`` decodes to an explicit null. Empty text stays an empty string.

    Examples:
        >>> coerce_text("true").value
        True
        >>> coerce_text("42").value
        42
        >>> coerce_text("4.5").value
        4.5
        >>> coerce_text("NULL").is_null
        True
    """
    if text == NULL_TEXT:
        return TypedValue.null()
    lowered = text.strip().lower()
    if lowered == "true":
        return TypedValue.boolean(True)
    if lowered == "false":
        return TypedValue.boolean(False)
    if _INT_RE.match(text):
        return TypedValue.number(int(text))
    if parse_float(text) is not None:
        return TypedValue.number(float(text))
    return TypedValue.string(text)


def parse_float(text: str) -> float | None:
    """Strict float parsing: finite values only, no digit separators."""
    candidate = text.strip()
    if not candidate or "_" in candidate or candidate.lower() in _NON_FINITE:
        return None
    try:
        return float(candidate)
    except ValueError:
        return None


__all__ = [
    "NULL_TEXT",
    "TypedValue",
    "coerce_text",
    "parse_float",
    "format_number",
    "format_temporal",
]
