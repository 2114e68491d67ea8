from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SourceType(str, Enum):
    """Source types written by the importers."""

    PLENARY_PROTOCOL = "Plenarprotokoll"
    COMMITTEE_PROTOCOL = "Hauptausschussprotokoll"
    WRITTEN_INQUIRY = "Schriftliche Anfrage"
    WEBPAGE = "Webseite"


@dataclass(frozen=True)
class RegisteredDocument:
    """A document candidate discovered by an importer (registered_documents row)."""

    id: int
    source_url: str
    source_type: str
    registered_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_webpage(self) -> bool:
        return self.source_type == SourceType.WEBPAGE.value


@dataclass(frozen=True)
class ProcessedDocument:
    """One processing attempt for a registered document (processed_documents row)."""

    id: int
    registered_document_id: int
    processing_started_at: datetime | None = None
    processing_finished_at: datetime | None = None
    processing_error: str | None = None
    processing_error_terminal: bool = False
    file_checksum: str | None = None
    file_size: int | None = None
    num_pages: int | None = None

    @property
    def is_successful(self) -> bool:
        return self.processing_finished_at is not None and self.processing_error is None

    @property
    def is_failed(self) -> bool:
        return self.processing_finished_at is not None and self.processing_error is not None

    @property
    def is_rejected(self) -> bool:
        """Failed with a terminal error; never retried automatically."""
        return self.is_failed and self.processing_error_terminal

    @property
    def is_stuck(self) -> bool:
        return self.processing_started_at is not None and self.processing_finished_at is None


@dataclass(frozen=True)
class ProcessedDocumentChunk:
    """A persisted, embeddable slice of one page (processed_document_chunks row)."""

    id: int
    processed_document_id: int
    content: str
    page: int
    chunk_index: int
    embedding: list[float] | None = None


@dataclass(frozen=True)
class ProcessedDocumentSummary:
    """Summary, tags and summary vector of a processed document."""

    id: int
    processed_document_id: int
    summary: str
    tags: list[str] = field(default_factory=list)
    summary_embedding: list[float] | None = None


@dataclass(frozen=True)
class RegisteredDocumentHistory:
    """A registered document together with every processing attempt made for it."""

    document: RegisteredDocument
    attempts: tuple[ProcessedDocument, ...] = ()


@dataclass(frozen=True)
class ExternalSource:
    """A manually curated web resource (external_sources row)."""

    id: int
    source_url: str
    metadata: dict[str, Any] = field(default_factory=dict)
