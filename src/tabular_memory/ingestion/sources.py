"""Local CSV and Excel readers.

Each worksheet (or CSV file) becomes a :class:`SourceTable`: normalized
headers, row dictionaries keyed by those headers and the worksheet row number
of every row. Blank cells are ``None``.

The table is anchored on the first non-empty row of the sheet; the header is
``header_row_index`` rows below it and data rows follow the header. Leading
empty columns are dropped. Row numbers stay relative to the sheet, so a
table whose header sits in row 3 starts its data at row 4.

This is the only place that raises :class:`SourceUnreadableError`.
"""

from __future__ import annotations

import csv
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils import column_index_from_string
from openpyxl.utils.exceptions import InvalidFileException

from tabular_memory.config import IngestionConfig
from tabular_memory.core.diagnostics import DiagnosticCode, DiagnosticsSink, report
from tabular_memory.core.errors import SourceUnreadableError
from tabular_memory.core.values import TypedValue
from tabular_memory.ingestion.headers import normalize_headers

logger = logging.getLogger(__name__)

CSV_SUFFIXES = {".csv": ",", ".tsv": "\t"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
SUPPORTED_SUFFIXES = set(CSV_SUFFIXES) | EXCEL_SUFFIXES

# Row keys added by include_worksheet_names / include_row_numbers.
WORKSHEET_KEY = "_worksheet"
ROW_NUMBER_KEY = "_rowNumber"


@dataclass
class SourceTable:
    """One rectangular table read from a source file.

    Attributes:
        name: Worksheet name, or the file stem for delimited files.
        source_file: File name the table was read from.
        raw_headers: Header cells as found.
        headers: Unique normalized headers, aligned with ``raw_headers``.
        rows: Row dictionaries keyed by ``headers``.
        row_numbers: 1-based worksheet row of each entry in ``rows``.
    """

    name: str
    source_file: str
    raw_headers: List[Any] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_numbers: List[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.headers


def _cell(value: Any) -> Any:
    if TypedValue.from_python(value).is_null:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def frame_to_table(
    df: pd.DataFrame,
    name: str,
    source_file: str,
    config: Optional[IngestionConfig] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
    hidden_rows: Optional[Set[int]] = None,
    hidden_columns: Optional[Set[int]] = None,
) -> SourceTable:
    """Turn a header-less frame (one frame row per sheet row) into a :class:`SourceTable`.

    ``hidden_rows`` and ``hidden_columns`` hold 1-based sheet row and column
    numbers; they are skipped only when the matching config switch is on.
    """
    cfg = config or IngestionConfig()
    table = SourceTable(name=name, source_file=source_file)
    if df.empty:
        logger.debug("Worksheet %s is empty", name)
        return table

    grid = [[_cell(v) for v in values] for values in df.itertuples(index=False, name=None)]
    positions = list(range(df.shape[1]))
    if cfg.skip_hidden_columns and hidden_columns:
        positions = [p for p in positions if p + 1 not in hidden_columns]
    used = [p for p in positions if any(row[p] is not None for row in grid)]
    occupied = [i for i, row in enumerate(grid) if any(row[p] is not None for p in positions)]
    if not used or not occupied:
        logger.debug("Worksheet %s has no cells", name)
        return table
    positions = [p for p in positions if p >= used[0]]

    header_at = occupied[0] + cfg.header_row_index
    if header_at >= len(grid):
        logger.warning(
            "Worksheet %s has no row %d below its first non-empty row %d",
            name,
            cfg.header_row_index,
            occupied[0] + 1,
        )
        return table

    raw_headers = [grid[header_at][p] for p in positions]
    table.raw_headers = raw_headers
    table.headers = normalize_headers(
        raw_headers,
        prefix=cfg.default_column_prefix,
        diagnostics=diagnostics,
        normalize=cfg.normalize_header_names,
    )
    for index in range(header_at + 1, len(grid)):
        row_number = index + 1
        if cfg.skip_hidden_rows and hidden_rows and row_number in hidden_rows:
            logger.debug("Skipping hidden row %d in %s", row_number, name)
            continue
        cells = [grid[index][p] for p in positions]
        if cfg.skip_empty_rows and all(c is None for c in cells):
            continue
        row: Dict[str, Any] = {}
        if cfg.include_worksheet_names:
            row[WORKSHEET_KEY] = name
        if cfg.include_row_numbers:
            row[ROW_NUMBER_KEY] = row_number
        row.update(zip(table.headers, cells))
        table.rows.append(row)
        table.row_numbers.append(row_number)
    logger.debug("Read %d rows from %s/%s", len(table.rows), source_file, name)
    return table


def _field_counts(path: Path, sep: str) -> List[int]:
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        return [len(record) for record in csv.reader(f, delimiter=sep)]


def _read_delimited(
    path: Path, sep: str, diagnostics: Optional[DiagnosticsSink] = None
) -> pd.DataFrame:
    """Read a delimited file as strings, one frame row per line.

    Short records are padded with blanks. Records wider than the header keep
    their extra fields under placeholder columns and are reported as
    ``malformed_input``.
    """
    counts = _field_counts(path, sep)
    width = max(counts, default=0)
    if width == 0:
        logger.warning("Empty file: %s", path)
        return pd.DataFrame()
    header_width = next((c for c in counts if c), 0)
    for record, count in enumerate(counts, start=1):
        if count > header_width:
            report(
                diagnostics,
                DiagnosticCode.MALFORMED_INPUT,
                f"Record {record} of {path.name} has {count} fields, header has {header_width}; "
                "extra fields kept under placeholder columns",
                level="warning",
                record=record,
                field_count=count,
            )
    return pd.read_csv(
        path,
        sep=sep,
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        na_values=[""],
        skip_blank_lines=False,
        encoding="utf-8-sig",
    )


def _select_sheets(available: Iterable[str], cfg: IngestionConfig) -> List[str]:
    """Sheets to read, matched case-insensitively; every sheet when none is configured."""
    available = list(available)
    wanted = list(cfg.sheet_names)
    if cfg.sheet_name:
        wanted.append(cfg.sheet_name)
    if not wanted:
        return available
    lookup = {w.lower() for w in wanted}
    selected = [s for s in available if s.lower() in lookup]
    missing = lookup - {s.lower() for s in selected}
    if missing:
        logger.warning("Worksheets not found: %s", ", ".join(sorted(missing)))
    if not selected:
        raise ValueError(f"None of the worksheets {wanted} exist (found {available})")
    return selected


def _hidden_dimensions(path: Path, sheets: Iterable[str]) -> Dict[str, Tuple[Set[int], Set[int]]]:
    """Hidden 1-based row and column numbers per worksheet."""
    # Read-only workbooks do not expose row and column dimensions.
    book = load_workbook(path, data_only=True)
    try:
        hidden: Dict[str, Tuple[Set[int], Set[int]]] = {}
        for sheet in sheets:
            ws = book[sheet]
            rows = {int(r) for r, dim in ws.row_dimensions.items() if dim.hidden}
            columns: Set[int] = set()
            for key, dim in ws.column_dimensions.items():
                if not dim.hidden:
                    continue
                low = dim.min or column_index_from_string(key)
                columns.update(range(low, (dim.max or low) + 1))
            hidden[sheet] = (rows, columns)
        return hidden
    finally:
        book.close()


def read_tables(
    path: Path,
    config: Optional[IngestionConfig] = None,
    diagnostics: Optional[DiagnosticsSink] = None,
) -> List[SourceTable]:
    """Read every table from ``path``.

    Args:
        path: CSV, TSV or Excel (``.xlsx``/``.xlsm``) file.
        config: Header placement, sheet selection, hidden and empty row
            handling.
        diagnostics: Sink for header and ragged-record diagnostics.

    Returns:
        One table per selected worksheet (one for delimited files).

    Raises:
        SourceUnreadableError: The file is missing, of an unsupported type,
            has none of the requested worksheets, or cannot be parsed at all.
    """
    cfg = config or IngestionConfig()
    path = Path(path)
    if not path.is_file():
        raise SourceUnreadableError(f"Source file not found: {path}", path=path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SourceUnreadableError(
            f"Unsupported file type '{suffix}' (expected one of {sorted(SUPPORTED_SUFFIXES)})",
            path=path,
        )
    hidden: Dict[str, Tuple[Set[int], Set[int]]] = {}
    try:
        if suffix in CSV_SUFFIXES:
            frames = {path.stem: _read_delimited(path, CSV_SUFFIXES[suffix], diagnostics)}
        else:
            with pd.ExcelFile(path, engine="openpyxl") as book:
                sheets = _select_sheets(book.sheet_names, cfg)
                frames = {sheet: book.parse(sheet, header=None) for sheet in sheets}
            if cfg.skip_hidden_rows or cfg.skip_hidden_columns:
                hidden = _hidden_dimensions(path, frames)
    except (
        OSError,
        ValueError,
        csv.Error,
        KeyError,
        zipfile.BadZipFile,
        InvalidFileException,
        pd.errors.ParserError,
    ) as e:
        raise SourceUnreadableError(f"Cannot read {path}: {e}", path=path) from e

    tables = []
    for name, df in frames.items():
        hidden_rows, hidden_columns = hidden.get(name, (set(), set()))
        tables.append(
            frame_to_table(df, str(name), path.name, cfg, diagnostics, hidden_rows, hidden_columns)
        )
    return tables


__all__ = [
    "SUPPORTED_SUFFIXES",
    "WORKSHEET_KEY",
    "ROW_NUMBER_KEY",
    "SourceTable",
    "frame_to_table",
    "read_tables",
]
