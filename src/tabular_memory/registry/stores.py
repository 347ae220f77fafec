"""Schema record storage backends.

A store is an append-only collection of schema documents (the camelCase
JSON shape produced by :meth:`SchemaRecord.to_dict`) grouped by index name.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Tuple

from tabular_memory.core.errors import SchemaPersistenceError

logger = logging.getLogger(__name__)

SCHEMA_FILE_SUFFIX = ".schema.json"


class SchemaStore(Protocol):
    def put(self, index: str, document: Mapping[str, Any]) -> str:
        """Persist one schema document and return its id.

        Raises:
            SchemaPersistenceError: The write failed.
        """
        ...

    def documents(self, index: Optional[str] = None) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield ``(index, document)`` pairs, optionally for one index only."""
        ...


class InMemorySchemaStore:
    """Dict-backed store, mostly for tests and one-shot CLI runs."""

    def __init__(self) -> None:
        self._indexes: Dict[str, List[Dict[str, Any]]] = {}

    def put(self, index: str, document: Mapping[str, Any]) -> str:
        doc_id = str(document.get("id") or "")
        if not doc_id:
            raise SchemaPersistenceError("Schema document has no id")
        self._indexes.setdefault(index, []).append(json.loads(json.dumps(dict(document))))
        return doc_id

    def documents(self, index: Optional[str] = None) -> Iterator[Tuple[str, Dict[str, Any]]]:
        for name, docs in self._indexes.items():
            if index is not None and name != index:
                continue
            for doc in docs:
                yield name, dict(doc)


class JsonDirectorySchemaStore:
    """One ``<root>/<index>/<schema_id>.schema.json`` file per record."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _index_dir(self, index: str) -> Path:
        if not index or "/" in index or "\\" in index or index in (".", ".."):
            raise SchemaPersistenceError(f"Invalid index name: {index!r}")
        return self.root / index

    def put(self, index: str, document: Mapping[str, Any]) -> str:
        doc_id = str(document.get("id") or "")
        if not doc_id or "/" in doc_id or "\\" in doc_id:
            raise SchemaPersistenceError(f"Invalid schema id: {doc_id!r}")
        path = self._index_dir(index) / f"{doc_id}{SCHEMA_FILE_SUFFIX}"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                raise SchemaPersistenceError(f"Schema file already exists: {path}")
            path.write_text(json.dumps(dict(document), ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            raise SchemaPersistenceError(f"Failed to write {path}: {e}") from e
        logger.debug("Wrote schema %s to %s", doc_id, path)
        return doc_id

    def documents(self, index: Optional[str] = None) -> Iterator[Tuple[str, Dict[str, Any]]]:
        if not self.root.exists():
            return
        if index is not None:
            dirs = [self._index_dir(index)]
        else:
            dirs = sorted(p for p in self.root.iterdir() if p.is_dir())
        for directory in dirs:
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob(f"*{SCHEMA_FILE_SUFFIX}")):
                try:
                    data = json.loads(path.read_text(encoding="utf-8"))
                except (OSError, ValueError) as e:
                    logger.warning("Skipping unreadable schema file %s: %s", path, e)
                    continue
                if isinstance(data, dict):
                    yield directory.name, data


__all__ = [
    "SCHEMA_FILE_SUFFIX",
    "SchemaStore",
    "InMemorySchemaStore",
    "JsonDirectorySchemaStore",
]
