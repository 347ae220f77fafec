"""Filter key normalization.

Keys starting with ``data.`` refer to tabular columns. Their remainder is
cleaned with the header rule, camelCase boundaries get an underscore and the
result is lower-cased (``data.serverName`` becomes ``data.server_name``).
Other keys are tag fields: kept as written (trimmed) and compared
case-insensitively.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tabular_memory.core.enums import FieldKind
from tabular_memory.ingestion.headers import clean_identifier

logger = logging.getLogger(__name__)

DATA_PREFIX = "data."

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_field_name(name: str) -> str:
    """Snake-case a data field name.

    Examples:
        >>> normalize_field_name("serverName")
        'server_name'
        >>> normalize_field_name("Unit Price ($)")
        'unit_price'
        >>> normalize_field_name("server_name")
        'server_name'
    """
    cleaned = clean_identifier(name)
    return _CAMEL_BOUNDARY_RE.sub("_", cleaned).lower()


@dataclass(frozen=True)
class FieldRef:
    """A normalized filter key.

    Attributes:
        kind: Tag or data field.
        name: Field name without the ``data.`` prefix.
        raw: Key as given by the caller.
    """

    kind: FieldKind
    name: str
    raw: str = ""

    @property
    def is_data(self) -> bool:
        return self.kind == FieldKind.DATA

    @property
    def path(self) -> str:
        """Canonical key: ``data.<name>`` for data fields, the name for tags."""
        return f"{DATA_PREFIX}{self.name}" if self.is_data else self.name

    @property
    def compare_key(self) -> str:
        """Key used to decide whether two refs address the same field."""
        return self.path if self.is_data else self.name.casefold()

    def with_name(self, name: str) -> "FieldRef":
        return FieldRef(kind=self.kind, name=name, raw=self.raw)

    def __str__(self) -> str:
        return self.path


def normalize_filter_key(key: str) -> FieldRef:
    """Map a raw filter key to a :class:`FieldRef`.

    Idempotent: normalizing ``ref.path`` again yields an equal path.

    Examples:
        >>> normalize_filter_key("data.Environment").path
        'data.environment'
        >>> normalize_filter_key(" Project ").path
        'Project'
    """
    raw = str(key)
    text = raw.strip()
    if text.startswith(DATA_PREFIX):
        remainder = text[len(DATA_PREFIX):]
        name = normalize_field_name(remainder)
        if not name:
            logger.warning("Filter key %r has an empty field name", raw)
        return FieldRef(kind=FieldKind.DATA, name=name, raw=raw)
    return FieldRef(kind=FieldKind.TAG, name=text, raw=raw)


def _patterns(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def normalize_filter_spec(
    spec: Optional[Mapping[str, Any]],
) -> Tuple[Dict[FieldRef, List[str]], List[str]]:
    """Normalize every key of a filter specification.

    Keys addressing the same field are merged, values concatenated in order.
    Scalars become one-element lists. ``None`` and blank patterns are dropped
    with a warning; a key left without patterns is dropped entirely.

    Returns:
        ``(fields, warnings)`` where ``fields`` maps each :class:`FieldRef` to
        its patterns in first-seen key order.
    """
    fields: Dict[str, Tuple[FieldRef, List[str]]] = {}
    warnings: List[str] = []
    for key, value in (spec or {}).items():
        ref = normalize_filter_key(key)
        if not ref.name:
            warnings.append(f"Filter key '{key}' has no field name and was ignored.")
            continue
        kept: List[str] = []
        for pattern in _patterns(value):
            text = "" if pattern is None else str(pattern)
            if not text.strip():
                warnings.append(f"Empty filter value for '{key}' was ignored.")
                continue
            kept.append(text)
        if not kept:
            continue
        slot = fields.get(ref.compare_key)
        if slot is None:
            fields[ref.compare_key] = (ref, kept)
        else:
            slot[1].extend(kept)
    return {ref: values for ref, values in fields.values()}, warnings


__all__ = [
    "DATA_PREFIX",
    "FieldRef",
    "normalize_field_name",
    "normalize_filter_key",
    "normalize_filter_spec",
]
