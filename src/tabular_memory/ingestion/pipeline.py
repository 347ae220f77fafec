"""File ingestion: read, infer schema, register it, encode rows.

The pipeline wires the pure components together for local files:

    read_tables -> infer_schema -> SchemaRegistry.register -> encode_row

A schema store failure leaves rows without a schema id; an unreadable file
is skipped by :func:`ingest_files` and recorded in the batch result. Embedding
and persistence are optional collaborators whose errors propagate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from tqdm import tqdm

from tabular_memory.config import Settings
from tabular_memory.core.diagnostics import DiagnosticsSink
from tabular_memory.core.errors import SourceUnreadableError
from tabular_memory.core.ports import DocumentSink, Embedder
from tabular_memory.core.schemas import RowChunk, SchemaRecord, effective_dataset_name
from tabular_memory.ingestion.encoder import EncodingContext, encode_row
from tabular_memory.ingestion.headers import clean_identifier
from tabular_memory.ingestion.sampling import infer_schema
from tabular_memory.ingestion.sources import SourceTable, read_tables
from tabular_memory.registry.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass
class TableResult:
    """Outcome of ingesting one table.

    Attributes:
        table: Worksheet or file name.
        dataset_name: Dataset the rows were filed under.
        schema: Stored schema record, or None when it could not be stored.
        chunks: Encoded rows, in source order.
    """

    table: str
    dataset_name: str
    schema: Optional[SchemaRecord]
    chunks: List[RowChunk] = field(default_factory=list)


@dataclass
class IngestResult:
    source_file: str
    tables: List[TableResult] = field(default_factory=list)

    @property
    def chunks(self) -> List[RowChunk]:
        return [c for t in self.tables for c in t.chunks]


@dataclass
class BatchResult:
    results: List[IngestResult] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def chunk_count(self) -> int:
        return sum(len(r.chunks) for r in self.results)


def _persist(chunk: RowChunk, sink: DocumentSink, embedder: Optional[Embedder]) -> None:
    document = chunk.to_document()
    if embedder is not None:
        document["embedding"] = list(embedder.embed_text(chunk.text))
    sink.persist(document)


def ingest_table(
    table: SourceTable,
    registry: SchemaRegistry,
    settings: Optional[Settings] = None,
    dataset_name: str = "",
    target_index: Optional[str] = None,
    sink: Optional[DocumentSink] = None,
    embedder: Optional[Embedder] = None,
    show_progress: bool = False,
) -> TableResult:
    """Infer and register a schema for ``table``, then encode its rows.

    Args:
        table: Rows read by :func:`read_tables`.
        registry: Where the schema record is stored.
        settings: Sampling and encoding settings; defaults when omitted.
        dataset_name: Logical dataset; generic names fall back to the file stem.
        target_index: Index the schema is stored under.
        sink: Optional document sink receiving each chunk.
        embedder: Optional embedder; used only with ``sink``.
        show_progress: Display a tqdm progress bar.
    """
    settings = settings or Settings()
    cfg = settings.ingestion
    name = effective_dataset_name(dataset_name, table.source_file)
    inferred = infer_schema(name, table.source_file, table.headers, table.rows, cfg, table.raw_headers)
    stored = registry.register(inferred, target_index or settings.schema.index_name)
    if stored is None:
        logger.warning("Continuing %s/%s without a schema id", table.source_file, table.name)

    base = EncodingContext(
        source_name=table.name,
        row_number=0,
        dataset_name=inferred.dataset_name,
        schema_id=stored.id if stored else None,
        import_batch_id=stored.import_batch_id if stored else None,
    )
    result = TableResult(table=table.name, dataset_name=inferred.dataset_name, schema=stored)
    rows = zip(table.row_numbers, table.rows)
    if show_progress:
        rows = tqdm(
            rows,
            total=len(table.rows),
            desc=f"{table.source_file}/{table.name}"[:31].ljust(31),
            unit="rows",
        )
    for sequence, (row_number, row) in enumerate(rows, start=1):
        chunk = encode_row(row, base.for_row(row_number, sequence), cfg.include_structured_data)
        if sink is not None:
            _persist(chunk, sink, embedder)
        result.chunks.append(chunk)
    logger.info(
        "Encoded %d rows from %s/%s (schema %s)",
        len(result.chunks),
        table.source_file,
        table.name,
        stored.id if stored else "-",
    )
    return result


def ingest_file(
    path: Path,
    registry: SchemaRegistry,
    settings: Optional[Settings] = None,
    dataset_name: str = "",
    target_index: Optional[str] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
    sink: Optional[DocumentSink] = None,
    embedder: Optional[Embedder] = None,
    show_progress: bool = False,
) -> IngestResult:
    """Ingest every non-empty table of one file.

    Workbooks with several non-empty sheets file each sheet under
    ``<dataset>_<sheet>``.

    Raises:
        SourceUnreadableError: The file cannot be read.
    """
    settings = settings or Settings()
    path = Path(path)
    tables = [t for t in read_tables(path, settings.ingestion, diagnostics) if not t.is_empty]
    result = IngestResult(source_file=path.name)
    if not tables:
        logger.warning("No data found in %s", path)
        return result
    base_name = effective_dataset_name(dataset_name, path.name)
    for table in tables:
        name = base_name
        if len(tables) > 1:
            name = f"{base_name}_{clean_identifier(table.name) or table.name}"
        result.tables.append(
            ingest_table(
                table,
                registry,
                settings,
                dataset_name=name,
                target_index=target_index,
                sink=sink,
                embedder=embedder,
                show_progress=show_progress,
            )
        )
    return result


def ingest_files(
    paths: Iterable[Path],
    registry: SchemaRegistry,
    settings: Optional[Settings] = None,
    dataset_name: str = "",
    target_index: Optional[str] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
    sink: Optional[DocumentSink] = None,
    embedder: Optional[Embedder] = None,
    show_progress: bool = False,
) -> BatchResult:
    """Ingest several files; unreadable ones are logged and skipped."""
    batch = BatchResult()
    for path in paths:
        try:
            batch.results.append(
                ingest_file(
                    path,
                    registry,
                    settings,
                    dataset_name=dataset_name,
                    target_index=target_index,
                    diagnostics=diagnostics,
                    sink=sink,
                    embedder=embedder,
                    show_progress=show_progress,
                )
            )
        except SourceUnreadableError as e:
            logger.error("Skipping %s: %s", path, e)
            batch.failures[str(path)] = str(e)
    return batch


__all__ = [
    "TableResult",
    "IngestResult",
    "BatchResult",
    "ingest_table",
    "ingest_file",
    "ingest_files",
]
