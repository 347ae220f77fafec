"""Reference query execution over polars frames.

Stored documents are decoded and flattened into one frame: tag fields become
plain columns, decoded data fields become ``data.<name>`` columns. All values
are compared as text. Each OR-group of a :class:`Predicate` becomes
``pl.any_horizontal`` and the groups are joined with ``pl.all_horizontal``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import polars as pl

from tabular_memory.core.diagnostics import DiagnosticsSink
from tabular_memory.core.enums import MatchKind
from tabular_memory.decoding.sentence_parser import decode_document
from .fields import DATA_PREFIX, FieldRef, normalize_field_name
from .predicate import Clause, Comparison, Predicate

logger = logging.getLogger(__name__)

ROW_INDEX_COLUMN = "__row_index"
_REGEX_META = frozenset(r"\.+*?()|[]{}^$#&-~")
_SKIPPED_DOCUMENT_KEYS = {"text", "tabular_data", "embedding", "vector"}


def like_to_regex(pattern: str) -> str:
    """Translate a SQL LIKE pattern into an anchored regular expression.

    Examples:
        >>> like_to_regex("%foo_")
        '^.*foo.$'
    """
    out = []
    for ch in pattern:
        if ch == "%":
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append("\\" + ch if ch in _REGEX_META else ch)
    return "^" + "".join(out) + "$"


def flatten_document(
    document: Mapping[str, Any], diagnostics: Optional[DiagnosticsSink] = None
) -> Dict[str, Optional[str]]:
    """Tag and ``data.*`` columns for one stored document."""
    row: Dict[str, Optional[str]] = {}
    for key, value in document.items():
        if key in _SKIPPED_DOCUMENT_KEYS or key.startswith(DATA_PREFIX):
            continue
        row[str(key)] = None if value is None else str(value)
    decoded = decode_document(document, diagnostics=diagnostics)
    for key, value in decoded.source.items():
        row.setdefault(str(key), None if value is None else str(value))
    for key, typed in decoded.data.items():
        row[f"{DATA_PREFIX}{key}"] = None if typed.is_null else typed.to_text()
    return row


def documents_to_frame(
    documents: Sequence[Mapping[str, Any]], diagnostics: Optional[DiagnosticsSink] = None
) -> pl.DataFrame:
    rows = []
    for index, document in enumerate(documents):
        row: Dict[str, Any] = flatten_document(document, diagnostics)
        row[ROW_INDEX_COLUMN] = index
        rows.append(row)
    if not rows:
        return pl.DataFrame({ROW_INDEX_COLUMN: pl.Series([], dtype=pl.Int64)})
    return pl.from_dicts(rows, infer_schema_length=None)


def resolve_frame_column(field: FieldRef, columns: Sequence[str]) -> Optional[str]:
    """Frame column addressed by ``field``.

    Exact path first. Tags then match case-insensitively, data fields by
    their snake-cased name (``data.ServerName`` answers ``data.server_name``).
    """
    if field.path in columns:
        return field.path
    for column in columns:
        if field.is_data:
            if column.startswith(DATA_PREFIX) and (
                normalize_field_name(column[len(DATA_PREFIX):]) == normalize_field_name(field.name)
            ):
                return column
        elif not column.startswith(DATA_PREFIX) and column.casefold() == field.compare_key:
            return column
    return None


def _comparison_expr(comparison: Comparison, columns: Sequence[str]) -> pl.Expr:
    path = resolve_frame_column(comparison.field, columns)
    if path is None:
        return pl.lit(False)
    col = pl.col(path).cast(pl.Utf8, strict=False)
    value = comparison.value
    if comparison.kind == MatchKind.FUZZY_LIKE:
        regex = like_to_regex(value)
        if comparison.case_insensitive:
            regex = "(?i)" + regex
        expr = col.str.contains(regex, literal=False)
    elif comparison.kind == MatchKind.FUZZY_CONTAINS:
        if comparison.case_insensitive:
            expr = col.str.to_lowercase().str.contains(value.lower(), literal=True)
        else:
            expr = col.str.contains(value, literal=True)
    elif comparison.case_insensitive:
        expr = col.str.to_lowercase() == value.lower()
    else:
        expr = col == value
    return expr.fill_null(False)


def _clause_expr(clause: Clause, columns: Sequence[str]) -> pl.Expr:
    return pl.any_horizontal([_comparison_expr(c, columns) for c in clause.comparisons])


def predicate_expr(predicate: Predicate, columns: Sequence[str]) -> pl.Expr:
    """Polars expression equivalent to ``predicate`` over a flattened frame."""
    if predicate.is_empty:
        return pl.lit(True)
    return pl.all_horizontal([_clause_expr(c, columns) for c in predicate.clauses])


def apply_predicate(frame: pl.DataFrame, predicate: Predicate, limit: Optional[int] = None) -> pl.DataFrame:
    result = frame.filter(predicate_expr(predicate, frame.columns))
    if limit is not None:
        result = result.head(limit)
    return result


class FrameQueryRunner:
    """In-memory :class:`~tabular_memory.core.ports.QueryRunner`.

    Args:
        documents: Stored documents (``text`` plus metadata fields).
        diagnostics: Sink for decode diagnostics.
    """

    def __init__(
        self,
        documents: Sequence[Mapping[str, Any]],
        diagnostics: Optional[DiagnosticsSink] = None,
    ) -> None:
        self.documents: List[Dict[str, Any]] = [dict(d) for d in documents]
        self.frame = documents_to_frame(self.documents, diagnostics)

    def run_query(self, predicate: Predicate, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        matched = apply_predicate(self.frame, predicate, limit)
        indexes = matched.get_column(ROW_INDEX_COLUMN).to_list()
        logger.debug("Predicate %s matched %d of %d documents", predicate, len(indexes), len(self.documents))
        return [self.documents[i] for i in indexes]


__all__ = [
    "ROW_INDEX_COLUMN",
    "like_to_regex",
    "resolve_frame_column",
    "flatten_document",
    "documents_to_frame",
    "predicate_expr",
    "apply_predicate",
    "FrameQueryRunner",
]
