"""Shared pytest fixtures for tabular memory tests."""

from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import pytest

from tabular_memory.config import FuzzyMatchConfig, Settings
from tabular_memory.core.diagnostics import CollectingSink
from tabular_memory.core.enums import DataType
from tabular_memory.core.schemas import ColumnDescriptor, SchemaRecord
from tabular_memory.registry.schema_registry import SchemaRegistry
from tabular_memory.registry.stores import InMemorySchemaStore


@pytest.fixture
def server_rows() -> List[Dict[str, Any]]:
    """Rows keyed by normalized headers, as the source readers produce them."""
    return [
        {"Server_Name": "SVR01", "Environment": "Production", "CPU_Cores": 8, "Active": True, "Owner": "ops"},
        {"Server_Name": "SVR02", "Environment": "Staging", "CPU_Cores": 4, "Active": False, "Owner": None},
        {"Server_Name": "SVR03", "Environment": "Production", "CPU_Cores": 16, "Active": True, "Owner": "dba"},
        {"Server_Name": "web-01", "Environment": "Development", "CPU_Cores": 2, "Active": True, "Owner": "web"},
    ]


@pytest.fixture
def servers_schema() -> SchemaRecord:
    return SchemaRecord.create(
        "servers",
        "servers.xlsx",
        [
            ColumnDescriptor("Server Name", "Server_Name", DataType.STRING, ("SVR01", "SVR02")),
            ColumnDescriptor("Environment", "Environment", DataType.STRING, ("Production", "Staging")),
            ColumnDescriptor("CPU Cores", "CPU_Cores", DataType.NUMBER, ("8", "4")),
            ColumnDescriptor("Active", "Active", DataType.BOOLEAN, ("True", "False")),
        ],
    )


@pytest.fixture
def diagnostics() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def registry(diagnostics: CollectingSink) -> SchemaRegistry:  # pylint: disable=redefined-outer-name
    return SchemaRegistry(InMemorySchemaStore(), diagnostics=diagnostics)


@pytest.fixture
def fuzzy_contains() -> FuzzyMatchConfig:
    return FuzzyMatchConfig(enabled=True, operator="CONTAINS", case_insensitive=True, minimum_length=2)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def servers_csv(tmp_path: Path) -> Path:
    """CSV with a blank header, a blank row and a duplicated header."""
    path = tmp_path / "servers.csv"
    path.write_text(
        "Server Name,Environment,CPU Cores,,Environment\n"
        "SVR01,Production,8,x,eu\n"
        ",,,,\n"
        "SVR02,Staging,,y,us\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def servers_xlsx(tmp_path: Path) -> Path:
    """Workbook with two sheets written through pandas/openpyxl."""
    path = tmp_path / "inventory.xlsx"
    servers = pd.DataFrame(
        {
            "Server Name": ["SVR01", "SVR02"],
            "Environment": ["Production", "Staging"],
            "CPU Cores": [8, 4],
        }
    )
    owners = pd.DataFrame({"Owner": ["ops", "dba"], "Email": ["ops@example.com", "dba@example.com"]})
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        servers.to_excel(writer, sheet_name="Servers", index=False)
        owners.to_excel(writer, sheet_name="Owners", index=False)
    return path
