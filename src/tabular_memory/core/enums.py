"""Core enumerations used across the package."""

from __future__ import annotations

from enum import Enum


class DataType(str, Enum):
    """Inferred column types.

    Values are strings to ease serialization of schema records.
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


# Tie-break order for type inference: earlier wins on equal tallies.
TYPE_PRIORITY = (DataType.BOOLEAN, DataType.DATE, DataType.NUMBER, DataType.STRING)


class ValueKind(str, Enum):
    """Variants of a decoded or encoded cell value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    NULL = "null"


class FieldKind(str, Enum):
    """Tag fields are record metadata; data fields are tabular columns."""

    TAG = "tag"
    DATA = "data"


class MatchKind(str, Enum):
    """Comparison kinds available in a filter predicate."""

    EXACT = "exact"
    FUZZY_CONTAINS = "fuzzy_contains"
    FUZZY_LIKE = "fuzzy_like"
    CASE_INSENSITIVE_EXACT = "case_insensitive_exact"


class FuzzyOperator(str, Enum):
    LIKE = "LIKE"
    CONTAINS = "CONTAINS"


__all__ = [
    "DataType",
    "TYPE_PRIORITY",
    "ValueKind",
    "FieldKind",
    "MatchKind",
    "FuzzyOperator",
]
