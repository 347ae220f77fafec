"""Tabular Memory Tools: row serialization and schema-aware filtering.

This package turns spreadsheet/CSV rows into canonical record sentences for a
document-oriented vector store, decodes those sentences back into typed rows,
and builds backend-agnostic filter predicates validated against inferred
dataset schemas.
"""

__all__ = [
    "__version__",
]

__version__ = "0.1.0"
