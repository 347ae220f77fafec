"""End-to-end flow: workbook ingestion, schema-aware filters and decoding."""

from __future__ import annotations

from tabular_memory.config import FuzzyMatchConfig
from tabular_memory.decoding import decode_document
from tabular_memory.ingestion.pipeline import ingest_file
from tabular_memory.query import FrameQueryRunner, build_predicate


def test_ingest_filter_decode(servers_xlsx, registry):
    result = ingest_file(servers_xlsx, registry)
    documents = [c.to_document() for c in result.chunks]
    assert len(documents) == 4

    schema = registry.get_schema("inventory_servers")
    assert schema is not None
    assert [c.data_type.value for c in schema.columns] == ["string", "string", "number"]

    build = build_predicate(
        {"data.environment": "prod", "dataset_name": "inventory_Servers"},
        FuzzyMatchConfig(enabled=True),
        schema,
    )
    assert build.warnings == []
    (match,) = FrameQueryRunner(documents).run_query(build.predicate)

    decoded = decode_document(match)
    assert decoded.plain_data() == {"Server_Name": "SVR01", "Environment": "Production", "CPU_Cores": 8}
    assert decoded.source["source_name"] == "Servers"
    assert decoded.source["row_number"] == 2
    assert decoded.source["schema_id"] == schema.id
