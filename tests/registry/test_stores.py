"""Tests for schema store backends."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tabular_memory.core.diagnostics import DiagnosticCode
from tabular_memory.core.errors import SchemaPersistenceError
from tabular_memory.registry import InMemorySchemaStore, JsonDirectorySchemaStore, SchemaRegistry


class TestInMemoryStore:
    def test_documents_are_copies(self):
        store = InMemorySchemaStore()
        document = {"id": "s1", "columns": []}
        store.put("tabular", document)
        document["columns"].append("mutated")
        assert list(store.documents()) == [("tabular", {"id": "s1", "columns": []})]

    def test_missing_id(self):
        with pytest.raises(SchemaPersistenceError):
            InMemorySchemaStore().put("tabular", {})


class TestJsonDirectoryStore:
    def test_writes_one_file_per_schema(self, tmp_path: Path, servers_schema):
        registry = SchemaRegistry(JsonDirectorySchemaStore(tmp_path))
        schema_id = registry.store_schema(servers_schema)
        path = tmp_path / "tabular" / f"{schema_id}.schema.json"
        assert path.is_file()
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["datasetName"] == "servers"
        assert data["columns"][0]["normalizedName"] == "Server_Name"

    def test_reads_back_across_instances(self, tmp_path: Path, servers_schema):
        schema_id = SchemaRegistry(JsonDirectorySchemaStore(tmp_path)).store_schema(servers_schema)
        reopened = SchemaRegistry(JsonDirectorySchemaStore(tmp_path))
        assert reopened.get_schema("servers").id == schema_id

    def test_refuses_overwrite(self, tmp_path: Path):
        store = JsonDirectorySchemaStore(tmp_path)
        store.put("tabular", {"id": "s1"})
        with pytest.raises(SchemaPersistenceError, match="already exists"):
            store.put("tabular", {"id": "s1"})

    @pytest.mark.parametrize("index", ["", "..", "a/b"])
    def test_invalid_index(self, tmp_path: Path, index):
        with pytest.raises(SchemaPersistenceError):
            JsonDirectorySchemaStore(tmp_path).put(index, {"id": "s1"})

    def test_unwritable_root_reported(self, tmp_path: Path, diagnostics, servers_schema):
        root = tmp_path / "not-a-dir"
        root.write_text("occupied", encoding="utf-8")
        registry = SchemaRegistry(JsonDirectorySchemaStore(root), diagnostics=diagnostics)
        assert registry.store_schema(servers_schema) is None
        assert len(diagnostics.by_code(DiagnosticCode.SCHEMA_PERSISTENCE_FAILURE)) == 1

    def test_unreadable_files_skipped(self, tmp_path: Path):
        (tmp_path / "tabular").mkdir()
        (tmp_path / "tabular" / "broken.schema.json").write_text("{", encoding="utf-8")
        assert list(JsonDirectorySchemaStore(tmp_path).documents()) == []

    def test_missing_root(self, tmp_path: Path):
        assert list(JsonDirectorySchemaStore(tmp_path / "absent").documents()) == []
