"""Header normalization.

Raw column headers become identifiers made of letters, digits and single
underscores. The same rule is applied to ``data.*`` filter keys so that
filters line up with stored column names.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, List, Optional

from tabular_memory.core.diagnostics import DiagnosticCode, DiagnosticsSink, report

logger = logging.getLogger(__name__)

DEFAULT_COLUMN_PREFIX = "Column"

_INVALID_CHARS_RE = re.compile(r"[^\w]")
_REPEATED_UNDERSCORE_RE = re.compile(r"_{2,}")


def _header_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, float) and math.isnan(raw):
        return ""
    return str(raw)


def clean_identifier(raw: Any) -> str:
    """Apply the character rule only; may return an empty string.

    Examples:
        >>> clean_identifier("Server Name (primary)")
        'Server_Name_primary'
        >>> clean_identifier(" -- ")
        ''
    """
    text = _INVALID_CHARS_RE.sub("_", _header_text(raw))
    text = _REPEATED_UNDERSCORE_RE.sub("_", text)
    return text.strip("_")


def normalize_header(raw: Any, column_index: int, prefix: str = DEFAULT_COLUMN_PREFIX) -> str:
    """Canonicalize one header.

    Args:
        raw: Header cell value; ``None``/NaN count as empty.
        column_index: 0-based position of the column, used for the placeholder.
        prefix: Placeholder prefix for empty headers.

    Returns:
        The cleaned identifier, or ``{prefix}{column_index + 1}`` when nothing
        is left. Never empty.

    Examples:
        >>> normalize_header("Unit Price ($)", 0)
        'Unit_Price'
        >>> normalize_header("   ", 2)
        'Column3'
    """
    cleaned = clean_identifier(raw)
    if cleaned:
        return cleaned
    return f"{prefix}{column_index + 1}"


def normalize_headers(
    raw_headers: Iterable[Any],
    prefix: str = DEFAULT_COLUMN_PREFIX,
    diagnostics: Optional[DiagnosticsSink] = None,
    normalize: bool = True,
) -> List[str]:
    """Normalize a header row and make every name unique.

    Collisions get numeric suffixes (``Name``, ``Name_2``, ``Name_3``). A
    suffixed name that is itself taken moves on to the next number.
    Placeholder substitutions are reported as ``malformed_input``.

    With ``normalize=False`` header text is kept as is (trimmed) and only
    blank headers are replaced.
    """
    names: List[str] = []
    seen = set()
    for index, raw in enumerate(raw_headers):
        if normalize:
            name = normalize_header(raw, index, prefix)
        else:
            name = _header_text(raw).strip() or f"{prefix}{index + 1}"
        if not clean_identifier(raw):
            report(
                diagnostics,
                DiagnosticCode.MALFORMED_INPUT,
                f"Empty header at column {index + 1}; using '{name}'",
                level="debug",
                column=index + 1,
                header=_header_text(raw),
            )
        if name in seen:
            base = name
            suffix = 2
            while f"{base}_{suffix}" in seen:
                suffix += 1
            name = f"{base}_{suffix}"
            logger.debug("Duplicate header '%s' renamed to '%s'", base, name)
        seen.add(name)
        names.append(name)
    return names


__all__ = [
    "DEFAULT_COLUMN_PREFIX",
    "clean_identifier",
    "normalize_header",
    "normalize_headers",
]
