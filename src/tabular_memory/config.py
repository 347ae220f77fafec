"""Configuration loading.

Settings are read once from YAML into frozen dataclasses and passed down
explicitly. A minimal file looks like::

    ingestion:
      sample_window: 100
      default_column_prefix: Column
      include_structured_data: true
      date_formats: ["%Y-%m-%d", "%d/%m/%Y"]
      sheet_names: [Servers, Owners]
      header_row_index: 0
      skip_hidden_rows: true
    fuzzy_match:
      enabled: true
      operator: CONTAINS
      case_insensitive: true
      minimum_length: 2
    schema:
      store_dir: data/schemas
      index_name: tabular

Missing sections and keys fall back to the defaults below. A single string is
accepted wherever a list of strings is expected.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from tabular_memory.core.enums import FuzzyOperator

DEFAULT_DATE_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d.%m.%Y",
)


def _require_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class IngestionConfig:
    """Knobs for header normalization, sampling and encoding.

    Attributes:
        sample_window: Rows sampled per column for type inference.
        common_values_limit: Distinct values kept per column.
        default_column_prefix: Placeholder prefix for empty headers.
        include_structured_data: Attach the raw row as JSON under ``tabular_data``.
        date_formats: ``strptime`` formats recognised as dates in text cells.
        sheet_name: Worksheet to read from workbooks; None reads every sheet.
        sheet_names: Worksheets to read, matched case-insensitively; combined
            with ``sheet_name``. Empty reads every sheet.
        header_row_index: Header position counted from the first non-empty row.
        normalize_header_names: Normalize headers before they become row keys.
        skip_empty_rows: Drop rows whose cells are all blank.
        skip_hidden_rows: Drop rows hidden in the workbook.
        skip_hidden_columns: Drop columns hidden in the workbook.
        include_worksheet_names: Add the worksheet name to each row as ``_worksheet``.
        include_row_numbers: Add the sheet row number to each row as ``_rowNumber``.
    """

    sample_window: int = 100
    common_values_limit: int = 10
    default_column_prefix: str = "Column"
    include_structured_data: bool = False
    date_formats: Tuple[str, ...] = DEFAULT_DATE_FORMATS
    sheet_name: Optional[str] = None
    sheet_names: Tuple[str, ...] = ()
    header_row_index: int = 0
    normalize_header_names: bool = True
    skip_empty_rows: bool = True
    skip_hidden_rows: bool = False
    skip_hidden_columns: bool = False
    include_worksheet_names: bool = False
    include_row_numbers: bool = False

    def __post_init__(self) -> None:
        for name in ("sample_window", "common_values_limit", "header_row_index"):
            _require_int(name, getattr(self, name))
        if self.sample_window < 1:
            raise ValueError("sample_window must be >= 1")
        if self.common_values_limit < 0:
            raise ValueError("common_values_limit must be >= 0")
        if not self.default_column_prefix:
            raise ValueError("default_column_prefix must not be empty")
        if self.header_row_index < 0:
            raise ValueError("header_row_index must be >= 0")


@dataclass(frozen=True)
class FuzzyMatchConfig:
    """Fuzzy filter matching.

    Disabled by default; exact matches are case-insensitive unless
    ``case_insensitive`` is turned off.
    """

    enabled: bool = False
    operator: FuzzyOperator = FuzzyOperator.CONTAINS
    case_insensitive: bool = True
    minimum_length: int = 2

    def __post_init__(self) -> None:
        if not isinstance(self.operator, FuzzyOperator):
            try:
                object.__setattr__(self, "operator", FuzzyOperator(str(self.operator).upper()))
            except ValueError as e:
                raise ValueError(
                    f"Invalid fuzzy operator: {self.operator}. Must be 'LIKE' or 'CONTAINS'."
                ) from e
        _require_int("minimum_length", self.minimum_length)
        if self.minimum_length < 0:
            raise ValueError("minimum_length must be >= 0")


@dataclass(frozen=True)
class SchemaConfig:
    store_dir: Optional[Path] = None
    index_name: str = "tabular"


@dataclass(frozen=True)
class Settings:
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    fuzzy_match: FuzzyMatchConfig = field(default_factory=FuzzyMatchConfig)
    schema: SchemaConfig = field(default_factory=SchemaConfig)

    def with_overrides(self, **sections: Any) -> "Settings":
        return replace(self, **sections)


def _string_tuple(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(x) for x in value)


def _section(cls: Any, data: Optional[Mapping[str, Any]]) -> Any:
    """Build a config dataclass from a YAML mapping, ignoring unknown keys."""
    if not data:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"Expected a mapping for {cls.__name__}, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {k: v for k, v in data.items() if k in known}
    for key in ("date_formats", "sheet_names"):
        if key in kwargs:
            kwargs[key] = _string_tuple(kwargs[key])
    if "store_dir" in kwargs and kwargs["store_dir"] is not None:
        kwargs["store_dir"] = Path(kwargs["store_dir"])
    return cls(**kwargs)


def settings_from_mapping(data: Optional[Mapping[str, Any]]) -> Settings:
    data = data or {}
    return Settings(
        ingestion=_section(IngestionConfig, data.get("ingestion")),
        fuzzy_match=_section(FuzzyMatchConfig, data.get("fuzzy_match")),
        schema=_section(SchemaConfig, data.get("schema")),
    )


def load_config(path: Optional[Path] = None) -> Settings:
    """Load settings from a YAML file; defaults when ``path`` is None.

    Raises:
        FileNotFoundError: When ``path`` is given but does not exist.
        ValueError: When a section is malformed, a value has the wrong type
            or is out of range.
    """
    if path is None:
        return Settings()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Config file is not valid YAML: {path}: {e}") from e
    if not isinstance(data, Mapping):
        raise ValueError(f"Config root must be a mapping: {path}")
    return settings_from_mapping(data)


__all__ = [
    "DEFAULT_DATE_FORMATS",
    "IngestionConfig",
    "FuzzyMatchConfig",
    "SchemaConfig",
    "Settings",
    "settings_from_mapping",
    "load_config",
]
