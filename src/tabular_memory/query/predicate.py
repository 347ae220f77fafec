"""Backend-agnostic filter predicates.

A filter specification such as::

    {"data.env": "Production", "project": ["a", "b"]}

becomes an AND of OR-groups, one group per field::

    (env == Production) AND (project == a OR project == b)

Rules, per value:

- a value containing ``%`` or ``_`` is a LIKE pattern, always;
- with fuzzy matching enabled, a value of at least ``minimum_length``
  characters on a string data field (or one whose type is unknown) becomes a
  fuzzy comparison (``LIKE %value%`` or ``CONTAINS value``);
- anything else is an equality test, case-insensitive for tags and following
  ``case_insensitive`` for data fields.

With a schema, ``data.*`` fields are resolved to the stored column name.
Unknown fields produce a warning and are still applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tabular_memory.config import FuzzyMatchConfig
from tabular_memory.core.diagnostics import DiagnosticCode, DiagnosticsSink, report
from tabular_memory.core.enums import DataType, FuzzyOperator, MatchKind
from tabular_memory.core.schemas import ColumnDescriptor, SchemaRecord
from .fields import DATA_PREFIX, FieldRef, normalize_field_name, normalize_filter_spec

logger = logging.getLogger(__name__)

WILDCARD_MARKERS = ("%", "_")

_OPERATORS = {
    MatchKind.EXACT: "==",
    MatchKind.CASE_INSENSITIVE_EXACT: "==",
    MatchKind.FUZZY_LIKE: "LIKE",
    MatchKind.FUZZY_CONTAINS: "CONTAINS",
}


def has_wildcard(value: str) -> bool:
    return any(marker in value for marker in WILDCARD_MARKERS)


@dataclass(frozen=True)
class Comparison:
    """One (field, comparison kind, value) triple.

    ``value`` is the operand as matched: for LIKE comparisons it is the full
    pattern including ``%`` markers. Case folding is left to the backend,
    driven by ``case_insensitive``.
    """

    field: FieldRef
    kind: MatchKind
    value: str
    case_insensitive: bool = False

    def describe(self) -> str:
        return f"{self.field.name} {_OPERATORS[self.kind]} {self.value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field.path,
            "kind": self.kind.value,
            "value": self.value,
            "case_insensitive": self.case_insensitive,
        }


@dataclass(frozen=True)
class Clause:
    """OR-group of comparisons on a single field."""

    field: FieldRef
    comparisons: Tuple[Comparison, ...]

    def describe(self) -> str:
        return "(" + " OR ".join(c.describe() for c in self.comparisons) + ")"


@dataclass(frozen=True)
class Predicate:
    """AND of :class:`Clause` objects; no clauses matches everything."""

    clauses: Tuple[Clause, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    def fields(self) -> List[FieldRef]:
        return [c.field for c in self.clauses]

    def describe(self) -> str:
        if not self.clauses:
            return "TRUE"
        return " AND ".join(c.describe() for c in self.clauses)

    def to_dict(self) -> Dict[str, Any]:
        return {"and": [{"or": [c.to_dict() for c in clause.comparisons]} for clause in self.clauses]}

    def __str__(self) -> str:
        return self.describe()


@dataclass
class PredicateBuild:
    predicate: Predicate
    warnings: List[str] = field(default_factory=list)


def resolve_column(schema: SchemaRecord, ref: FieldRef) -> Optional[ColumnDescriptor]:
    """Find the column a data field refers to.

    Tries, in order: case-insensitive match on normalized or original name,
    the raw key as written, then the snake-cased form of each column name.
    """
    column = schema.find_column(ref.name)
    if column is not None:
        return column
    raw = ref.raw.strip()
    if raw.startswith(DATA_PREFIX):
        column = schema.find_column(raw[len(DATA_PREFIX):])
        if column is not None:
            return column
    for candidate in schema.columns:
        if normalize_field_name(candidate.normalized_name) == ref.name:
            return candidate
    return None


def _comparison(
    ref: FieldRef,
    value: str,
    fuzzy: FuzzyMatchConfig,
    column_type: Optional[DataType],
) -> Comparison:
    data_case = fuzzy.case_insensitive
    case_insensitive = data_case if ref.is_data else True
    if has_wildcard(value):
        return Comparison(ref, MatchKind.FUZZY_LIKE, value, case_insensitive)
    is_string_field = ref.is_data and column_type in (None, DataType.STRING)
    if fuzzy.enabled and is_string_field and len(value) >= fuzzy.minimum_length:
        if fuzzy.operator == FuzzyOperator.LIKE:
            return Comparison(ref, MatchKind.FUZZY_LIKE, f"%{value}%", data_case)
        return Comparison(ref, MatchKind.FUZZY_CONTAINS, value, data_case)
    if case_insensitive:
        return Comparison(ref, MatchKind.CASE_INSENSITIVE_EXACT, value, True)
    return Comparison(ref, MatchKind.EXACT, value, False)


def build_predicate(
    spec: Optional[Mapping[str, Any]],
    fuzzy: Optional[FuzzyMatchConfig] = None,
    schema: Optional[SchemaRecord] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> PredicateBuild:
    """Turn a filter specification into a :class:`Predicate`.

    Args:
        spec: Field key to one pattern or a list of patterns.
        fuzzy: Fuzzy matching settings; disabled when omitted.
        schema: Schema to validate ``data.*`` keys against.
        diagnostics: Sink for ``unknown_filter_field``.

    Returns:
        The predicate and the warnings collected while building it. Never
        raises for unknown fields or blank values.

    Examples:
        >>> build = build_predicate({"data.env": "Production", "project": ["a", "b"]})
        >>> build.predicate.describe()
        '(env == Production) AND (project == a OR project == b)'
    """
    fuzzy = fuzzy or FuzzyMatchConfig()
    fields, warnings = normalize_filter_spec(spec)
    clauses: List[Clause] = []
    for ref, values in fields.items():
        column_type: Optional[DataType] = None
        if ref.is_data and schema is not None:
            column = resolve_column(schema, ref)
            if column is None:
                message = f"Field '{ref.name}' not found in schema for dataset '{schema.dataset_name}'."
                warnings.append(message)
                report(
                    diagnostics,
                    DiagnosticCode.UNKNOWN_FILTER_FIELD,
                    message,
                    level="warning",
                    field=ref.name,
                    dataset=schema.dataset_name,
                )
            else:
                ref = ref.with_name(column.normalized_name)
                column_type = column.data_type
        comparisons = tuple(_comparison(ref, value, fuzzy, column_type) for value in values)
        clauses.append(Clause(field=ref, comparisons=comparisons))
    predicate = Predicate(clauses=tuple(clauses))
    logger.debug("Built predicate: %s", predicate.describe())
    return PredicateBuild(predicate=predicate, warnings=warnings)


__all__ = [
    "WILDCARD_MARKERS",
    "has_wildcard",
    "Comparison",
    "Clause",
    "Predicate",
    "PredicateBuild",
    "resolve_column",
    "build_predicate",
]
