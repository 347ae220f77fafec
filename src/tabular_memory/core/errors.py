"""Exceptions raised by the package.

Data-quality problems never raise; they are reported through the diagnostics
channel (see :mod:`tabular_memory.core.diagnostics`). Only inputs that cannot
be read at all surface as exceptions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class TabularMemoryError(Exception):
    """Base class for package errors."""


class SourceUnreadableError(TabularMemoryError):
    """A source file could not be opened or parsed as a table.

    Attributes:
        path: Path of the offending file, when known.
    """

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class SchemaPersistenceError(TabularMemoryError):
    """Raised by schema stores when a write fails.

    The registry catches it; callers of ``SchemaRegistry.store_schema`` never
    see it.
    """


__all__ = ["TabularMemoryError", "SourceUnreadableError", "SchemaPersistenceError"]
