"""Tests for canonical record encoding."""

from __future__ import annotations

import json
from datetime import date

from tabular_memory.ingestion.encoder import EncodingContext, encode_row, encode_rows


class TestEncodeRow:
    def test_canonical_text(self):
        context = EncodingContext("Servers", 5, dataset_name="servers", schema_id="s1", import_batch_id="b1")
        chunk = encode_row({"Server": "SVR01", "Environment": "Production"}, context)
        assert chunk.text == (
            "Record from worksheet Servers, row 5: schema_id is s1. import_batch_id is b1. "
            "Server is SVR01. Environment is Production."
        )

    def test_without_identifiers(self):
        chunk = encode_row({"A": 1}, EncodingContext("Sheet1", 2))
        assert chunk.text == "Record from worksheet Sheet1, row 2: A is 1."
        assert chunk.metadata["schema_id"] == ""
        assert chunk.metadata["import_batch_id"] == ""

    def test_values_render_invariantly(self):
        row = {"Active": True, "Cores": 8.0, "Ratio": 0.5, "Owner": None, "Since": date(2024, 1, 31)}
        chunk = encode_row(row, EncodingContext("s", 2))
        assert chunk.text.endswith("Active is True. Cores is 8. Ratio is 0.5. Owner is NULL. Since is 2024-01-31.")

    def test_private_and_reserved_keys_skipped(self):
        row = {"_internal": "x", "schema_id": "forged", "import_batch_id": "forged", "Name": "a"}
        chunk = encode_row(row, EncodingContext("s", 2, schema_id="real"))
        assert chunk.text == "Record from worksheet s, row 2: schema_id is real. Name is a."

    def test_metadata(self):
        context = EncodingContext("Servers", 7, dataset_name="servers", schema_id="s1", import_batch_id="b1", sequence=3)
        chunk = encode_row({"A": "x"}, context)
        assert chunk.sequence == 3
        assert chunk.metadata == {
            "source_name": "Servers",
            "row_number": "7",
            "dataset_name": "servers",
            "schema_id": "s1",
            "import_batch_id": "b1",
        }

    def test_structured_payload(self):
        chunk = encode_row(
            {"A": "x", "B": 2, "C": None, "schema_id": "forged"}, EncodingContext("s", 2), include_structured=True
        )
        assert json.loads(chunk.metadata["tabular_data"]) == {"A": "x", "B": 2, "C": None}

    def test_worksheet_and_row_keys_only_in_structured_payload(self):
        row = {"_worksheet": "Servers", "_rowNumber": 4, "Server": "SVR01"}
        chunk = encode_row(row, EncodingContext("Servers", 4), include_structured=True)
        assert chunk.text == "Record from worksheet Servers, row 4: Server is SVR01."
        assert json.loads(chunk.metadata["tabular_data"]) == row


class TestEncodeRows:
    def test_sequences_and_default_row_numbers(self):
        chunks = encode_rows([{"A": 1}, {"A": 2}], EncodingContext("s", 2))
        assert [c.sequence for c in chunks] == [1, 2]
        assert [c.metadata["row_number"] for c in chunks] == ["2", "3"]

    def test_explicit_row_numbers(self):
        chunks = encode_rows([{"A": 1}, {"A": 2}], EncodingContext("s", 0), row_numbers=[2, 9])
        assert [c.metadata["row_number"] for c in chunks] == ["2", "9"]
        assert chunks[1].text.startswith("Record from worksheet s, row 9:")
