"""Data model for schema records, row chunks and decoded rows.

Schema records serialize to the camelCase JSON shape shared with other
consumers of the store::

    {id, datasetName, sourceFile, importDate, importBatchId,
     columns: [{name, normalizedName, dataType, isRequired, description,
                commonValues[]}],
     metadata: {document_type: "schema"}, file}

Row chunks and decoded rows name a record's origin with two keys:
``source_name`` holds the worksheet (or file) a row was read from and
``row_number`` its sheet row, as an ``int`` once decoded. These are the
"source" and "row" of a record; no shorter aliases are emitted.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tabular_memory.core.enums import DataType
from tabular_memory.core.values import TypedValue

SCHEMA_DOCUMENT_TYPE = "schema"

# Dataset names that only echo an index name; the source file stem is used instead.
GENERIC_DATASET_NAMES = frozenset({"default", "tabular"})

# Metadata keys carried by every row chunk.
META_SOURCE = "source_name"
META_ROW = "row_number"
META_DATASET = "dataset_name"
META_SCHEMA_ID = "schema_id"
META_IMPORT_BATCH_ID = "import_batch_id"
META_TABULAR_DATA = "tabular_data"


def new_batch_id() -> str:
    return str(uuid.uuid4())


def new_schema_id(source_file: str, now: Optional[datetime] = None) -> str:
    """Mint a schema id from the source file stem, a UTC timestamp and a nonce.

    Examples:
        >>> new_schema_id("servers.xlsx").startswith("schema_servers_")
        True
    """
    moment = now or datetime.now(timezone.utc)
    stem = PurePath(source_file).stem if source_file else "dataset"
    return f"schema_{stem}_{moment.strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}"


def effective_dataset_name(dataset_name: str, source_file: str) -> str:
    """Fall back to the source file stem for empty or generic dataset names."""
    if not dataset_name or dataset_name.strip().lower() in GENERIC_DATASET_NAMES:
        return PurePath(source_file).stem if source_file else dataset_name
    return dataset_name


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of a schema record.

    Attributes:
        name: Header text as it appeared in the source.
        normalized_name: Identifier produced by the header normalizer.
        data_type: Inferred type.
        common_values: Up to 10 distinct sampled values, first seen first.
        is_required: Always False for inferred schemas.
        description: Free-form description, empty unless set by a caller.
    """

    name: str
    normalized_name: str
    data_type: DataType = DataType.STRING
    common_values: Tuple[str, ...] = ()
    is_required: bool = False
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "normalizedName": self.normalized_name,
            "dataType": self.data_type.value,
            "isRequired": self.is_required,
            "description": self.description,
            "commonValues": list(self.common_values),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ColumnDescriptor":
        if not isinstance(data, Mapping):
            raise ValueError(f"Column entry must be an object, got {type(data).__name__}")
        raw_type = str(data.get("dataType") or DataType.STRING.value).lower()
        try:
            data_type = DataType(raw_type)
        except ValueError:
            data_type = DataType.STRING
        return cls(
            name=str(data.get("name", "")),
            normalized_name=str(data.get("normalizedName") or data.get("name", "")),
            data_type=data_type,
            common_values=tuple(str(v) for v in data.get("commonValues") or []),
            is_required=bool(data.get("isRequired", False)),
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True)
class SchemaRecord:
    """Descriptor of a dataset's columns for one import batch.

    Records are append-only: the registry stores copies with freshly minted
    ids instead of mutating existing ones.
    """

    id: str
    dataset_name: str
    source_file: str
    import_date: datetime
    import_batch_id: str
    columns: Tuple[ColumnDescriptor, ...] = ()
    metadata: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        dataset_name: str,
        source_file: str,
        columns: Optional[List[ColumnDescriptor]] = None,
    ) -> "SchemaRecord":
        return cls(
            id=new_schema_id(source_file),
            dataset_name=effective_dataset_name(dataset_name, source_file),
            source_file=source_file,
            import_date=datetime.now(timezone.utc),
            import_batch_id=new_batch_id(),
            columns=tuple(columns or ()),
        )

    def with_new_identity(self) -> "SchemaRecord":
        """Copy with a fresh id, batch id and import date, tagged as a schema document."""
        metadata = dict(self.metadata)
        metadata["document_type"] = SCHEMA_DOCUMENT_TYPE
        return replace(
            self,
            id=new_schema_id(self.source_file),
            import_batch_id=new_batch_id(),
            import_date=datetime.now(timezone.utc),
            metadata=metadata,
        )

    def find_column(self, field_name: str) -> Optional[ColumnDescriptor]:
        """Case-insensitive lookup by normalized or original column name."""
        wanted = field_name.casefold()
        for column in self.columns:
            if column.normalized_name.casefold() == wanted or column.name.casefold() == wanted:
                return column
        return None

    @property
    def column_names(self) -> List[str]:
        return [c.normalized_name for c in self.columns]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "datasetName": self.dataset_name,
            "sourceFile": self.source_file,
            "importDate": self.import_date.isoformat(),
            "importBatchId": self.import_batch_id,
            "columns": [c.to_dict() for c in self.columns],
            "metadata": dict(self.metadata),
            "file": self.dataset_name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SchemaRecord":
        """Parse a stored document.

        Raises:
            ValueError: When the document, its ``columns`` or its ``metadata``
                have the wrong shape, or ``importDate`` is not ISO 8601.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Schema document must be an object, got {type(data).__name__}")
        columns = data.get("columns") or []
        if not isinstance(columns, (list, tuple)):
            raise ValueError("Schema columns must be a list")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise ValueError("Schema metadata must be an object")
        raw_date = data.get("importDate")
        if isinstance(raw_date, datetime):
            import_date = raw_date
        elif raw_date:
            import_date = datetime.fromisoformat(str(raw_date).replace("Z", "+00:00"))
        else:
            import_date = datetime.fromtimestamp(0, timezone.utc)
        if import_date.tzinfo is None:
            import_date = import_date.replace(tzinfo=timezone.utc)
        return cls(
            id=str(data.get("id", "")),
            dataset_name=str(data.get("datasetName", "")),
            source_file=str(data.get("sourceFile", "")),
            import_date=import_date,
            import_batch_id=str(data.get("importBatchId", "")),
            columns=tuple(ColumnDescriptor.from_dict(c) for c in columns),
            metadata={str(k): str(v) for k, v in metadata.items()},
        )


@dataclass(frozen=True)
class RowChunk:
    """One encoded row, ready for embedding and persistence.

    Attributes:
        sequence: 1-based position of the row within its source.
        text: Canonical record text.
        metadata: Source name, row number, dataset name, schema id, import
            batch id and, optionally, the structured ``tabular_data`` payload.
    """

    sequence: int
    text: str
    metadata: Mapping[str, str] = field(default_factory=dict)

    def to_document(self) -> Dict[str, Any]:
        """Document shape handed to a ``DocumentSink``."""
        return {"sequence": self.sequence, "text": self.text, **dict(self.metadata)}


@dataclass
class DecodedRow:
    """Structured view of a stored record.

    Attributes:
        data: Column name to typed value.
        source: Source metadata (``source_name``, ``row_number``,
            ``schema_id``, ``import_batch_id`` when present).
        channel: ``"structured"``, ``"text"`` or ``"opaque"``.
        warnings: Decode diagnostics, human readable.
    """

    data: Dict[str, TypedValue] = field(default_factory=dict)
    source: Dict[str, Any] = field(default_factory=dict)
    channel: str = "text"
    warnings: List[str] = field(default_factory=list)

    def plain_data(self) -> Dict[str, Any]:
        """Data with values unwrapped to plain Python objects."""
        return {k: v.to_python() for k, v in self.data.items()}


__all__ = [
    "SCHEMA_DOCUMENT_TYPE",
    "GENERIC_DATASET_NAMES",
    "META_SOURCE",
    "META_ROW",
    "META_DATASET",
    "META_SCHEMA_ID",
    "META_IMPORT_BATCH_ID",
    "META_TABULAR_DATA",
    "new_batch_id",
    "new_schema_id",
    "effective_dataset_name",
    "ColumnDescriptor",
    "SchemaRecord",
    "RowChunk",
    "DecodedRow",
]
