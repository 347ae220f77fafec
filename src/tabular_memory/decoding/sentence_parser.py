"""Decoding of canonical record text back into structured rows.

The parser is the inverse of :func:`tabular_memory.ingestion.encoder.encode_row`
and never raises on bad input:

1. A second ``Record from worksheet`` prefix truncates the text; only the
   first record is parsed (reported as ``decode_ambiguity``).
2. Source name and row number come from ``Record from worksheet X, row Y:``.
3. The body after the first colon is split on ``". "``; each fragment is split
   on its first ``" is "``. One trailing ``.`` is dropped from the body.
   Fragments without ``" is "`` continue the previous value.
4. ``schema_id`` and ``import_batch_id`` go to the source metadata.
5. Fragments whose key looks like a record prefix are skipped.
6. Values are coerced: boolean, integer, float, else string; ``NULL`` is null.

Text without the prefix is kept whole under :data:`DEFAULT_CONTENT_KEY`.
When a ``tabular_data`` JSON object accompanies the text it wins for data;
its ``_``-prefixed keys (``_worksheet``, ``_rowNumber``) go to the source
metadata instead."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from tabular_memory.core.diagnostics import DiagnosticCode, DiagnosticsSink, report
from tabular_memory.core.schemas import (
    META_DATASET,
    META_IMPORT_BATCH_ID,
    META_ROW,
    META_SCHEMA_ID,
    META_SOURCE,
    META_TABULAR_DATA,
    DecodedRow,
)
from tabular_memory.core.values import TypedValue, coerce_text

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_KEY = "content"
RECORD_PREFIX = "Record from worksheet"
CHANNEL_STRUCTURED = "structured"
CHANNEL_TEXT = "text"
CHANNEL_OPAQUE = "opaque"

_PREFIX_RE = re.compile(r"^\s*Record from worksheet (?P<source>.+?), row (?P<row>\d+):", re.DOTALL)
_PREFIX_LIKE_RE = re.compile(r"record\s+from\s+worksheet", re.IGNORECASE)
_FRAGMENT_SEP = ". "
_KEY_SEP = " is "
_METADATA_KEYS = (META_SCHEMA_ID, META_IMPORT_BATCH_ID)


def truncate_concatenated(text: str) -> Tuple[str, bool]:
    """Cut ``text`` before a second record prefix.

    Returns:
        The (possibly shortened) text and whether a cut happened.

    Examples:
        >>> truncate_concatenated("Record from worksheet A, row 1: x is 1. Record from worksheet A, row 2: x is 2.")
        ('Record from worksheet A, row 1: x is 1.', True)
    """
    first = text.find(RECORD_PREFIX)
    if first < 0:
        return text, False
    second = text.find(RECORD_PREFIX, first + len(RECORD_PREFIX))
    if second < 0:
        return text, False
    return text[:second].rstrip(), True


def split_fragments(body: str) -> List[Tuple[str, str]]:
    """Split a record body into (key, raw value) pairs.

    Examples:
        >>> split_fragments("Name is Dr. Who. Age is 42.")
        [('Name', 'Dr. Who'), ('Age', '42')]
    """
    body = body.strip()
    if body.endswith("."):
        body = body[:-1]
    pairs: List[Tuple[str, str]] = []
    for fragment in body.split(_FRAGMENT_SEP):
        if _KEY_SEP in fragment:
            key, value = fragment.split(_KEY_SEP, 1)
            pairs.append((key.strip(), value))
        elif fragment.rstrip().endswith(" is") and fragment.strip() != "is":
            pairs.append((fragment.rstrip()[: -len(" is")].strip(), ""))
        elif pairs:
            key, value = pairs[-1]
            pairs[-1] = (key, f"{value}{_FRAGMENT_SEP}{fragment}")
        elif fragment.strip():
            logger.debug("Dropping leading fragment without a key: %r", fragment)
    return pairs


def _parse_structured(
    structured: Union[str, Mapping[str, Any], None],
) -> Tuple[Optional[Dict[str, TypedValue]], Optional[str]]:
    if structured is None or structured == "":
        return None, None
    payload: Any = structured
    if isinstance(structured, (str, bytes)):
        try:
            payload = json.loads(structured)
        except ValueError as e:
            return None, f"Structured row data is not valid JSON: {e}"
    if not isinstance(payload, Mapping):
        return None, "Structured row data is not a JSON object"
    return {str(k): TypedValue.from_python(v) for k, v in payload.items()}, None


def decode_record(
    text: str,
    structured: Union[str, Mapping[str, Any], None] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> DecodedRow:
    """Decode one stored record.

    Args:
        text: Canonical record text.
        structured: Optional ``tabular_data`` payload (JSON text or mapping).
        diagnostics: Sink for ``decode_ambiguity``/``malformed_input``.

    Returns:
        A :class:`DecodedRow`; never raises for malformed text.

    Examples:
        >>> row = decode_record(
        ...     "Record from worksheet Servers, row 5: schema_id is s1. "
        ...     "import_batch_id is b1. Server is SVR01. Environment is Production."
        ... )
        >>> row.plain_data()
        {'Server': 'SVR01', 'Environment': 'Production'}
        >>> row.source
        {'source_name': 'Servers', 'row_number': 5, 'schema_id': 's1', 'import_batch_id': 'b1'}
    """
    result = DecodedRow()
    text = text or ""

    structured_data, structured_error = _parse_structured(structured)
    if structured_error:
        result.warnings.append(structured_error)
        report(diagnostics, DiagnosticCode.MALFORMED_INPUT, structured_error, level="warning")
    if structured_data:
        for key in [k for k in structured_data if k.startswith("_")]:
            result.source[key] = structured_data.pop(key).to_python()

    text, truncated = truncate_concatenated(text)
    if truncated:
        message = "Concatenated records detected; only the first record was decoded"
        result.warnings.append(message)
        report(diagnostics, DiagnosticCode.DECODE_AMBIGUITY, message, level="warning")

    match = _PREFIX_RE.match(text)
    if match is None:
        if structured_data is not None:
            result.data = structured_data
            result.channel = CHANNEL_STRUCTURED
            return result
        result.data = {DEFAULT_CONTENT_KEY: TypedValue.string(text)}
        result.channel = CHANNEL_OPAQUE
        if text.strip():
            report(
                diagnostics,
                DiagnosticCode.MALFORMED_INPUT,
                "Record prefix not found; text kept as opaque content",
                level="debug",
            )
        return result

    result.source[META_SOURCE] = match.group("source").strip()
    result.source[META_ROW] = int(match.group("row"))

    data: Dict[str, TypedValue] = {}
    for key, raw in split_fragments(text[match.end():]):
        if not key or _PREFIX_LIKE_RE.search(key):
            logger.debug("Skipping fragment with key %r", key)
            continue
        if key in _METADATA_KEYS:
            result.source[key] = raw.strip()
            continue
        data[key] = coerce_text(raw)

    if structured_data is not None:
        result.data = structured_data
        result.channel = CHANNEL_STRUCTURED
    else:
        result.data = data
        result.channel = CHANNEL_TEXT
    return result


def decode_document(
    document: Mapping[str, Any], diagnostics: Optional[DiagnosticsSink] = None
) -> DecodedRow:
    """Decode a stored document (``text`` plus metadata fields).

    Document metadata fills source keys the text did not provide. The
    ``tabular_data`` field, when present, is used as the structured channel.
    """
    row = decode_record(
        str(document.get("text") or ""),
        structured=document.get(META_TABULAR_DATA),
        diagnostics=diagnostics,
    )
    for key in (META_SOURCE, META_ROW, META_DATASET, META_SCHEMA_ID, META_IMPORT_BATCH_ID):
        value = document.get(key)
        if key in row.source or value in (None, ""):
            continue
        if key == META_ROW:
            try:
                value = int(value)
            except (TypeError, ValueError):
                pass
        row.source[key] = value
    return row


__all__ = [
    "DEFAULT_CONTENT_KEY",
    "RECORD_PREFIX",
    "CHANNEL_STRUCTURED",
    "CHANNEL_TEXT",
    "CHANNEL_OPAQUE",
    "truncate_concatenated",
    "split_fragments",
    "decode_record",
    "decode_document",
]
