"""Schema registry.

Stores and retrieves :class:`SchemaRecord` documents through a
:class:`~tabular_memory.registry.stores.SchemaStore`. The registry is
append-only: every :meth:`SchemaRegistry.store_schema` call mints a new schema
id and import batch id, and re-imports of a dataset are new batches.

A failing store never stops ingestion. The failure is logged, reported as
``schema_persistence_failure`` and ``None`` is returned so rows can still be
emitted without a schema id.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from tabular_memory.core.diagnostics import DiagnosticCode, DiagnosticsSink, report
from tabular_memory.core.schemas import SCHEMA_DOCUMENT_TYPE, SchemaRecord
from tabular_memory.registry.stores import InMemorySchemaStore, SchemaStore

logger = logging.getLogger(__name__)

DEFAULT_INDEX = "tabular"
PROMPT_EXAMPLES_PER_COLUMN = 5


class SchemaRegistry:
    """Append-only registry of schema records.

    Args:
        store: Backend holding schema documents; in-memory when omitted.
        diagnostics: Sink for persistence failures.
        default_index: Index used when ``store_schema`` gets no target.

    Examples:
        >>> registry = SchemaRegistry()
        >>> schema_id = registry.store_schema(schema)
        >>> registry.get_schema(schema.dataset_name).id == schema_id
        True
    """

    def __init__(
        self,
        store: Optional[SchemaStore] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        default_index: str = DEFAULT_INDEX,
    ) -> None:
        self.store: SchemaStore = store if store is not None else InMemorySchemaStore()
        self.diagnostics = diagnostics
        self.default_index = default_index

    # ------------------------------------------------------------------ #
    # writes
    # ------------------------------------------------------------------ #
    def register(self, schema: SchemaRecord, target_index: Optional[str] = None) -> Optional[SchemaRecord]:
        """Store a copy of ``schema`` with fresh ids; ``None`` when the store fails."""
        index = target_index or self.default_index
        record = schema.with_new_identity()
        try:
            self.store.put(index, record.to_dict())
        except Exception as e:
            logger.error("Error storing schema for dataset %s: %s", record.dataset_name, e)
            report(
                self.diagnostics,
                DiagnosticCode.SCHEMA_PERSISTENCE_FAILURE,
                f"Failed to store schema for dataset '{record.dataset_name}': {e}",
                level="error",
                dataset=record.dataset_name,
                index=index,
            )
            return None
        logger.info(
            "Created new schema %s for dataset %s with import batch %s",
            record.id,
            record.dataset_name,
            record.import_batch_id,
        )
        return record

    def store_schema(self, schema: SchemaRecord, target_index: Optional[str] = None) -> Optional[str]:
        """Persist ``schema`` and return the newly minted schema id (or None)."""
        record = self.register(schema, target_index)
        return record.id if record is not None else None

    # ------------------------------------------------------------------ #
    # reads
    # ------------------------------------------------------------------ #
    def list_schemas(self, index: Optional[str] = None) -> List[SchemaRecord]:
        """All schema records, oldest first."""
        records: List[SchemaRecord] = []
        for _, document in self.store.documents(index):
            metadata = document.get("metadata") or {}
            if isinstance(metadata, Mapping) and (
                metadata.get("document_type", SCHEMA_DOCUMENT_TYPE) != SCHEMA_DOCUMENT_TYPE
            ):
                continue
            try:
                records.append(SchemaRecord.from_dict(document))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed schema document %s: %s", document.get("id"), e)
        records.sort(key=lambda r: r.import_date)
        return records

    def get_schema(self, dataset_name: str, index: Optional[str] = None) -> Optional[SchemaRecord]:
        """Latest schema for ``dataset_name`` (case-insensitive), by import date."""
        wanted = (dataset_name or "").casefold()
        matches = [r for r in self.list_schemas(index) if r.dataset_name.casefold() == wanted]
        if not matches:
            logger.debug("No schema found for dataset %s", dataset_name)
            return None
        return matches[-1]

    def get_schema_by_id(self, schema_id: str, index: Optional[str] = None) -> Optional[SchemaRecord]:
        for record in self.list_schemas(index):
            if record.id == schema_id:
                return record
        return None

    def get_schemas_by_source_file(self, source_file: str, index: Optional[str] = None) -> List[SchemaRecord]:
        return [r for r in self.list_schemas(index) if r.source_file == source_file]

    def list_dataset_names(self, index: Optional[str] = None) -> List[str]:
        """Distinct dataset names in first-imported order."""
        names: Dict[str, None] = {}
        for record in self.list_schemas(index):
            names.setdefault(record.dataset_name, None)
        return list(names)

    def describe_schema(self, schema: SchemaRecord) -> str:
        return describe_schema(schema)


def describe_schema(schema: SchemaRecord, examples: int = PROMPT_EXAMPLES_PER_COLUMN) -> str:
    """Field listing for filter generation, sorted by normalized name.

    Examples:
        >>> print(describe_schema(schema))
        Structured Data Fields (Prefix keys with 'data.'):
        - data.Environment (e.g., "Production", "Staging")
        - data.Server (e.g., "SVR01")
    """
    lines = ["Structured Data Fields (Prefix keys with 'data.'):"]
    if not schema.columns:
        lines.append("  (No specific column data available)")
    for column in sorted(schema.columns, key=lambda c: c.normalized_name):
        line = f"- data.{column.normalized_name}"
        shown = list(column.common_values[:examples])
        if shown:
            line += " (e.g., " + ", ".join(f'"{v}"' for v in shown) + ")"
        lines.append(line)
    return "\n".join(lines)


__all__ = [
    "DEFAULT_INDEX",
    "SchemaRegistry",
    "describe_schema",
]
