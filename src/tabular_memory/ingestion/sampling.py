"""Column type sampling and schema inference.

Each column is sampled over a fixed window of non-blank values. Every value
is classified by trying boolean, then date/time, then number, else string.
The most frequent class wins; ties go to the earlier entry of
:data:`~tabular_memory.core.enums.TYPE_PRIORITY`. A column with no samples is
a string column.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from tabular_memory.config import DEFAULT_DATE_FORMATS, IngestionConfig
from tabular_memory.core.enums import TYPE_PRIORITY, DataType, ValueKind
from tabular_memory.core.schemas import ColumnDescriptor, SchemaRecord
from tabular_memory.core.values import TypedValue, parse_float

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_WINDOW = 100
DEFAULT_COMMON_VALUES_LIMIT = 10


def _is_blank(value: Any) -> bool:
    typed = TypedValue.from_python(value)
    if typed.is_null:
        return True
    return typed.kind == ValueKind.STRING and not typed.value.strip()


def _looks_like_date(text: str, date_formats: Sequence[str]) -> bool:
    for fmt in date_formats:
        try:
            datetime.strptime(text, fmt)
        except ValueError:
            continue
        return True
    return False


def classify_value(
    value: Any, date_formats: Sequence[str] = DEFAULT_DATE_FORMATS
) -> Optional[DataType]:
    """Classify a single cell; ``None`` for blanks.

    Examples:
        >>> classify_value(" TRUE ")
        <DataType.BOOLEAN: 'boolean'>
        >>> classify_value("2024-01-31")
        <DataType.DATE: 'date'>
        >>> classify_value("3.5")
        <DataType.NUMBER: 'number'>
        >>> classify_value("n/a")
        <DataType.STRING: 'string'>
    """
    if _is_blank(value):
        return None
    typed = TypedValue.from_python(value)
    if typed.kind == ValueKind.BOOLEAN:
        return DataType.BOOLEAN
    if typed.kind == ValueKind.DATE:
        return DataType.DATE
    if typed.kind == ValueKind.NUMBER:
        return DataType.NUMBER
    text = typed.value.strip()
    if text.lower() in ("true", "false"):
        return DataType.BOOLEAN
    if _looks_like_date(text, date_formats):
        return DataType.DATE
    if parse_float(text) is not None:
        return DataType.NUMBER
    return DataType.STRING


def _window(values: Iterable[Any], sample_window: int) -> List[Any]:
    """First ``sample_window`` non-blank values."""
    sampled: List[Any] = []
    for value in values:
        if len(sampled) >= sample_window:
            break
        if not _is_blank(value):
            sampled.append(value)
    return sampled


def infer_column_type(
    values: Iterable[Any],
    sample_window: int = DEFAULT_SAMPLE_WINDOW,
    date_formats: Sequence[str] = DEFAULT_DATE_FORMATS,
) -> DataType:
    """Infer a column type from its values.

    Examples:
        >>> infer_column_type(["1", "2", "x"])
        <DataType.NUMBER: 'number'>
        >>> infer_column_type(["true", "1"])
        <DataType.BOOLEAN: 'boolean'>
        >>> infer_column_type([None, ""])
        <DataType.STRING: 'string'>
    """
    tally: Counter = Counter()
    for value in _window(values, sample_window):
        kind = classify_value(value, date_formats)
        if kind is not None:
            tally[kind] += 1
    if not tally:
        return DataType.STRING
    best = max(tally.values())
    for kind in TYPE_PRIORITY:
        if tally[kind] == best:
            return kind
    return DataType.STRING


def sample_common_values(
    values: Iterable[Any],
    sample_window: int = DEFAULT_SAMPLE_WINDOW,
    limit: int = DEFAULT_COMMON_VALUES_LIMIT,
) -> List[str]:
    """Distinct string renderings in first-seen order, case-sensitive."""
    seen: List[str] = []
    for value in _window(values, sample_window):
        if len(seen) >= limit:
            break
        text = TypedValue.from_python(value).to_text()
        if text not in seen:
            seen.append(text)
    return seen


def infer_schema(
    dataset_name: str,
    source_file: str,
    headers: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    config: Optional[IngestionConfig] = None,
    original_headers: Optional[Sequence[Any]] = None,
) -> SchemaRecord:
    """Build a :class:`SchemaRecord` with one column per header.

    Args:
        dataset_name: Logical dataset name; generic names fall back to the file stem.
        source_file: Name of the file the rows came from.
        headers: Normalized header names, used as row keys.
        rows: Row mappings keyed by ``headers``.
        config: Sampling knobs; defaults when omitted.
        original_headers: Raw header texts, aligned with ``headers``.

    Returns:
        A fresh record with new schema and batch ids.
    """
    cfg = config or IngestionConfig()
    raw_names = list(original_headers) if original_headers is not None else list(headers)
    columns: List[ColumnDescriptor] = []
    for index, header in enumerate(headers):
        column_values = [row.get(header) for row in rows]
        raw = raw_names[index] if index < len(raw_names) else header
        raw_text = "" if _is_blank(raw) else str(raw)
        columns.append(
            ColumnDescriptor(
                name=raw_text or header,
                normalized_name=header,
                data_type=infer_column_type(column_values, cfg.sample_window, cfg.date_formats),
                common_values=tuple(
                    sample_common_values(column_values, cfg.sample_window, cfg.common_values_limit)
                ),
            )
        )
    schema = SchemaRecord.create(dataset_name, source_file, columns)
    logger.debug(
        "Inferred schema %s for %s: %s",
        schema.id,
        schema.dataset_name,
        ", ".join(f"{c.normalized_name}:{c.data_type.value}" for c in columns),
    )
    return schema


__all__ = [
    "DEFAULT_SAMPLE_WINDOW",
    "DEFAULT_COMMON_VALUES_LIMIT",
    "classify_value",
    "infer_column_type",
    "sample_common_values",
    "infer_schema",
]
