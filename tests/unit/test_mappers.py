from datetime import datetime, timezone

import numpy as np
import pytest

from docprocessor.database.exceptions import StoreMappingError
from docprocessor.database.mappers import (
    to_chunk,
    to_external_source,
    to_processed_document,
    to_registered_document,
    to_summary,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _registered_row(**overrides: object) -> dict:
    row = {
        "id": 1,
        "source_url": "https://example.org/a.pdf",
        "source_type": "Hauptausschussprotokoll",
        "registered_at": NOW,
        "metadata": {"title": "Protokoll"},
    }
    row.update(overrides)
    return row


class TestToRegisteredDocument:
    def test_maps_row(self) -> None:
        document = to_registered_document(_registered_row())
        assert document.id == 1
        assert document.source_type == "Hauptausschussprotokoll"
        assert document.metadata == {"title": "Protokoll"}

    def test_metadata_from_json_string(self) -> None:
        document = to_registered_document(_registered_row(metadata='{"a": 1}'))
        assert document.metadata == {"a": 1}

    def test_missing_metadata_is_empty(self) -> None:
        document = to_registered_document(_registered_row(metadata=None))
        assert document.metadata == {}

    def test_missing_url_raises(self) -> None:
        with pytest.raises(StoreMappingError, match="source_url"):
            to_registered_document(_registered_row(source_url=None))

    def test_blank_url_raises(self) -> None:
        with pytest.raises(StoreMappingError, match="non-empty"):
            to_registered_document(_registered_row(source_url="  "))

    def test_wrong_id_type_raises(self) -> None:
        with pytest.raises(StoreMappingError, match="must be int"):
            to_registered_document(_registered_row(id="1"))

    def test_metadata_list_raises(self) -> None:
        with pytest.raises(StoreMappingError, match="JSON object"):
            to_registered_document(_registered_row(metadata=[1, 2]))


class TestToProcessedDocument:
    def test_in_flight_attempt_is_stuck(self) -> None:
        attempt = to_processed_document(
            {"id": 3, "registered_document_id": 1, "processing_started_at": NOW}
        )
        assert attempt.is_stuck
        assert not attempt.is_failed

    def test_terminal_failure_is_rejected(self) -> None:
        attempt = to_processed_document(
            {
                "id": 3,
                "registered_document_id": 1,
                "processing_started_at": NOW,
                "processing_finished_at": NOW,
                "processing_error": "too large",
                "processing_error_terminal": True,
            }
        )
        assert attempt.is_failed
        assert attempt.is_rejected

    def test_missing_owner_raises(self) -> None:
        with pytest.raises(StoreMappingError, match="registered_document_id"):
            to_processed_document({"id": 3})


class TestToSummary:
    def test_maps_tags(self) -> None:
        summary = to_summary(
            {"id": 1, "processed_document_id": 2, "summary": "Kurz", "tags": ["Verkehr"]}
        )
        assert summary.tags == ["Verkehr"]
        assert summary.summary_embedding is None

    def test_non_string_tags_raise(self) -> None:
        with pytest.raises(StoreMappingError, match="tags"):
            to_summary({"id": 1, "processed_document_id": 2, "summary": "x", "tags": [1]})


class TestToExternalSource:
    def test_metadata_is_whole_row(self) -> None:
        source = to_external_source(
            {"id": 4, "source_url": "https://berlin.de", "title": "Berlin", "created_at": NOW}
        )
        assert source.source_url == "https://berlin.de"
        assert source.metadata["title"] == "Berlin"
        assert source.metadata["created_at"] == NOW.isoformat()


class TestVectors:
    def _chunk_row(self, embedding: object) -> dict:
        return {
            "id": 1,
            "processed_document_id": 70,
            "content": "Text",
            "page": 1,
            "chunk_index": 0,
            "embedding": embedding,
        }

    def test_loaded_vector_becomes_list(self) -> None:
        chunk = to_chunk(self._chunk_row(np.array([0.5, 1.0], dtype=np.float32)))
        assert chunk.embedding == [0.5, 1.0]
        assert all(type(v) is float for v in chunk.embedding)

    def test_vector_not_selected(self) -> None:
        row = self._chunk_row(None)
        del row["embedding"]
        assert to_chunk(row).embedding is None
