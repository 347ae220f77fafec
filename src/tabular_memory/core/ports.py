"""Interfaces of the external collaborators.

Embedding, persistence and query execution live outside this package. Their
failures propagate to the caller unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from tabular_memory.query.predicate import Predicate


class Embedder(Protocol):
    def embed_text(self, text: str) -> Sequence[float]:
        ...


class DocumentSink(Protocol):
    def persist(self, document: Mapping[str, Any]) -> None:
        """Store one document (text, vector and metadata)."""
        ...


class QueryRunner(Protocol):
    def run_query(self, predicate: "Predicate", limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return stored documents matching ``predicate``, at most ``limit``."""
        ...


__all__ = ["Embedder", "DocumentSink", "QueryRunner"]
