"""Row encoding into canonical record text.

One row becomes one line::

    Record from worksheet Servers, row 5: schema_id is s1. import_batch_id is b1. Server is SVR01. Environment is Production.

Keys starting with ``_`` and the ``schema_id``/``import_batch_id`` row keys
are never written as data. The ``tabular_data`` payload keeps the ``_`` keys
(``_worksheet``, ``_rowNumber``) so readers of the structured channel see them. Missing values are written as ``NULL``. Values are
not escaped; :mod:`tabular_memory.decoding.sentence_parser` guards against
forged record prefixes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from tabular_memory.core.schemas import (
    META_DATASET,
    META_IMPORT_BATCH_ID,
    META_ROW,
    META_SCHEMA_ID,
    META_SOURCE,
    META_TABULAR_DATA,
    RowChunk,
)
from tabular_memory.core.values import TypedValue

RECORD_PREFIX = "Record from worksheet"
RESERVED_KEYS = frozenset({META_SCHEMA_ID, META_IMPORT_BATCH_ID})


@dataclass(frozen=True)
class EncodingContext:
    """Where a row comes from and which schema describes it.

    Attributes:
        source_name: Worksheet or file name shown in the record prefix.
        row_number: Row number shown in the record prefix.
        dataset_name: Dataset the row belongs to.
        schema_id: Schema record id; empty when the schema could not be stored.
        import_batch_id: Import batch id; empty when unknown.
        sequence: 1-based chunk sequence number.
    """

    source_name: str
    row_number: int
    dataset_name: str = ""
    schema_id: Optional[str] = None
    import_batch_id: Optional[str] = None
    sequence: int = 1

    def for_row(self, row_number: int, sequence: int) -> "EncodingContext":
        return replace(self, row_number=row_number, sequence=sequence)


def data_items(row: Mapping[str, Any]) -> Iterator[Tuple[str, Any]]:
    """Yield the (key, value) pairs that are written as data."""
    for key, value in row.items():
        key = str(key)
        if key.startswith("_") or key in RESERVED_KEYS:
            continue
        yield key, value


def render_text(row: Mapping[str, Any], context: EncodingContext) -> str:
    parts: List[str] = [f"{RECORD_PREFIX} {context.source_name}, row {context.row_number}: "]
    if context.schema_id:
        parts.append(f"{META_SCHEMA_ID} is {context.schema_id}. ")
    if context.import_batch_id:
        parts.append(f"{META_IMPORT_BATCH_ID} is {context.import_batch_id}. ")
    for key, value in data_items(row):
        parts.append(f"{key} is {TypedValue.from_python(value).to_text()}. ")
    return "".join(parts).rstrip()


def structured_payload(row: Mapping[str, Any]) -> str:
    """JSON rendering of the row for the ``tabular_data`` side channel.

    Unlike the record text it keeps ``_``-prefixed keys; reserved keys are dropped.
    """
    payload: Dict[str, Any] = {
        str(key): TypedValue.from_python(value).to_python()
        for key, value in row.items()
        if str(key) not in RESERVED_KEYS
    }
    return json.dumps(payload, ensure_ascii=False)


def encode_row(
    row: Mapping[str, Any],
    context: EncodingContext,
    include_structured: bool = False,
) -> RowChunk:
    """Encode one row.

    Args:
        row: Column name to cell value; insertion order is kept.
        context: Source, row number, dataset and schema identifiers.
        include_structured: Also attach the row as JSON under ``tabular_data``.

    Returns:
        An immutable :class:`RowChunk`.

    Examples:
        >>> ctx = EncodingContext("Servers", 5, schema_id="s1", import_batch_id="b1")
        >>> encode_row({"Server": "SVR01"}, ctx).text
        'Record from worksheet Servers, row 5: schema_id is s1. import_batch_id is b1. Server is SVR01.'
    """
    metadata: Dict[str, str] = {
        META_SOURCE: context.source_name,
        META_ROW: str(context.row_number),
        META_DATASET: context.dataset_name,
        META_SCHEMA_ID: context.schema_id or "",
        META_IMPORT_BATCH_ID: context.import_batch_id or "",
    }
    if include_structured:
        metadata[META_TABULAR_DATA] = structured_payload(row)
    return RowChunk(sequence=context.sequence, text=render_text(row, context), metadata=metadata)


def encode_rows(
    rows: Iterable[Mapping[str, Any]],
    context: EncodingContext,
    row_numbers: Optional[Iterable[int]] = None,
    include_structured: bool = False,
) -> List[RowChunk]:
    """Encode a sequence of rows with sequence numbers starting at 1.

    ``row_numbers`` defaults to ``context.row_number``, ``+1``, ``+2``...
    """
    numbers = iter(row_numbers) if row_numbers is not None else None
    chunks: List[RowChunk] = []
    for offset, row in enumerate(rows):
        row_number = next(numbers) if numbers is not None else context.row_number + offset
        chunks.append(encode_row(row, context.for_row(row_number, offset + 1), include_structured))
    return chunks


__all__ = [
    "RECORD_PREFIX",
    "RESERVED_KEYS",
    "EncodingContext",
    "data_items",
    "render_text",
    "structured_payload",
    "encode_row",
    "encode_rows",
]
