"""Non-fatal diagnostics.

Data-quality problems never raise. Components report them through an
injectable :class:`DiagnosticsSink` and carry on with a safe default:

- ``malformed_input``: unclassifiable header or row data
- ``schema_persistence_failure``: the schema store rejected a write
- ``unknown_filter_field``: a ``data.*`` filter key absent from the schema
- ``decode_ambiguity``: concatenated records detected while decoding
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)


class DiagnosticCode(str, Enum):
    MALFORMED_INPUT = "malformed_input"
    SCHEMA_PERSISTENCE_FAILURE = "schema_persistence_failure"
    UNKNOWN_FILTER_FIELD = "unknown_filter_field"
    DECODE_AMBIGUITY = "decode_ambiguity"


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class Diagnostic:
    """A single diagnostic event.

    Attributes:
        code: Which category of issue this is.
        message: Human-readable description.
        level: ``"debug"``, ``"info"``, ``"warning"`` or ``"error"``.
        fields: Structured context (dataset, field, row, ...).

    Examples:
        >>> Diagnostic(
        ...     code=DiagnosticCode.UNKNOWN_FILTER_FIELD,
        ...     message="Field 'colour' not found in schema for dataset 'cars'.",
        ...     fields={"field": "colour", "dataset": "cars"},
        ... )
    """

    code: DiagnosticCode
    message: str
    level: str = "warning"
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.level not in _LEVELS:
            raise ValueError(f"Invalid level: {self.level}. Must be one of {sorted(_LEVELS)}.")


class DiagnosticsSink(Protocol):
    def emit(self, diagnostic: Diagnostic) -> None:
        ...


class CollectingSink:
    """Keeps every diagnostic in memory; handy for tests and batch reports."""

    def __init__(self) -> None:
        self.diagnostics: List[Diagnostic] = []

    def emit(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def by_code(self, code: DiagnosticCode) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.code == code]

    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for d in self.diagnostics:
            out[d.code.value] = out.get(d.code.value, 0) + 1
        return out

    def __len__(self) -> int:
        return len(self.diagnostics)


class LoggingSink:
    """Forwards diagnostics to a stdlib logger, fields passed via ``extra``."""

    def __init__(self, target: Optional[logging.Logger] = None) -> None:
        self._logger = target or logger

    def emit(self, diagnostic: Diagnostic) -> None:
        self._logger.log(
            _LEVELS[diagnostic.level],
            "[%s] %s",
            diagnostic.code.value,
            diagnostic.message,
            extra={"diagnostic_code": diagnostic.code.value, "diagnostic_fields": dict(diagnostic.fields)},
        )


class FanOutSink:
    """Sends each diagnostic to several sinks."""

    def __init__(self, *sinks: DiagnosticsSink) -> None:
        self._sinks = list(sinks)

    def emit(self, diagnostic: Diagnostic) -> None:
        for sink in self._sinks:
            sink.emit(diagnostic)


def report(
    sink: Optional[DiagnosticsSink],
    code: DiagnosticCode,
    message: str,
    level: str = "warning",
    **fields: Any,
) -> Diagnostic:
    """Build a diagnostic and hand it to ``sink`` (or the module logger when None)."""
    diagnostic = Diagnostic(code=code, message=message, level=level, fields=fields)
    (sink or LoggingSink()).emit(diagnostic)
    return diagnostic


__all__ = [
    "DiagnosticCode",
    "Diagnostic",
    "DiagnosticsSink",
    "CollectingSink",
    "LoggingSink",
    "FanOutSink",
    "report",
]
