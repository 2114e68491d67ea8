"""Row -> domain record mapping at the store boundary.

Every mapper rejects rows that lack a required column or carry an
unexpected type instead of letting ``None`` leak into the pipeline.
"""

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from docprocessor.database.exceptions import StoreMappingError
from docprocessor.database.models import (
    ExternalSource,
    ProcessedDocument,
    ProcessedDocumentChunk,
    ProcessedDocumentSummary,
    RegisteredDocument,
)


def to_registered_document(row: Mapping[str, Any]) -> RegisteredDocument:
    return RegisteredDocument(
        id=_require(row, "id", int, "registered_documents"),
        source_url=_require_text(row, "source_url", "registered_documents"),
        source_type=_require_text(row, "source_type", "registered_documents"),
        registered_at=_require(row, "registered_at", datetime, "registered_documents"),
        metadata=_json_object(row.get("metadata"), "registered_documents.metadata"),
    )


def to_processed_document(row: Mapping[str, Any]) -> ProcessedDocument:
    table = "processed_documents"
    return ProcessedDocument(
        id=_require(row, "id", int, table),
        registered_document_id=_require(row, "registered_document_id", int, table),
        processing_started_at=_optional(row, "processing_started_at", datetime, table),
        processing_finished_at=_optional(row, "processing_finished_at", datetime, table),
        processing_error=_optional(row, "processing_error", str, table),
        processing_error_terminal=bool(row.get("processing_error_terminal") or False),
        file_checksum=_optional(row, "file_checksum", str, table),
        file_size=_optional(row, "file_size", int, table),
        num_pages=_optional(row, "num_pages", int, table),
    )


def to_chunk(row: Mapping[str, Any]) -> ProcessedDocumentChunk:
    table = "processed_document_chunks"
    return ProcessedDocumentChunk(
        id=_require(row, "id", int, table),
        processed_document_id=_require(row, "processed_document_id", int, table),
        content=_require(row, "content", str, table),
        page=_require(row, "page", int, table),
        chunk_index=_require(row, "chunk_index", int, table),
        embedding=_optional_vector(row, "embedding"),
    )


def to_summary(row: Mapping[str, Any]) -> ProcessedDocumentSummary:
    table = "processed_document_summaries"
    tags = row.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise StoreMappingError(f"{table}.tags must be a list of strings")
    return ProcessedDocumentSummary(
        id=_require(row, "id", int, table),
        processed_document_id=_require(row, "processed_document_id", int, table),
        summary=_require(row, "summary", str, table),
        tags=list(tags),
        summary_embedding=_optional_vector(row, "summary_embedding"),
    )


def to_external_source(row: Mapping[str, Any]) -> ExternalSource:
    return ExternalSource(
        id=_require(row, "id", int, "external_sources"),
        source_url=_require_text(row, "source_url", "external_sources"),
        metadata={k: _jsonable(v) for k, v in row.items()},
    )


def _optional_vector(row: Mapping[str, Any], column: str) -> list[float] | None:
    """pgvector loads vectors as numpy arrays; records carry plain lists."""
    raw = row.get(column)
    return None if raw is None else [float(v) for v in raw]


def _require(row: Mapping[str, Any], column: str, expected: type, table: str) -> Any:
    if column not in row or row[column] is None:
        raise StoreMappingError(f"{table}.{column} is required but missing")
    value = row[column]
    if expected is int and isinstance(value, bool):
        raise StoreMappingError(f"{table}.{column} must be int, got bool")
    if not isinstance(value, expected):
        raise StoreMappingError(
            f"{table}.{column} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _require_text(row: Mapping[str, Any], column: str, table: str) -> str:
    value: str = _require(row, column, str, table)
    if not value.strip():
        raise StoreMappingError(f"{table}.{column} must be a non-empty string")
    return value


def _optional(row: Mapping[str, Any], column: str, expected: type, table: str) -> Any:
    if row.get(column) is None:
        return None
    return _require(row, column, expected, table)


def _json_object(raw: Any, label: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreMappingError(f"{label} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise StoreMappingError(f"{label} must be a JSON object")
    return raw


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value
