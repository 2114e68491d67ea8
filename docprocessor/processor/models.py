from dataclasses import dataclass, field
from pathlib import Path

from docprocessor.database.models import ProcessedDocument, RegisteredDocument


@dataclass(frozen=True)
class ExtractedPage:
    """Text artifact of one page (numbered from 1) and its token count."""

    page: int
    path: Path
    tokens: int

    def read_text(self) -> str:
        return self.path.read_text(encoding="utf-8")


@dataclass(frozen=True)
class ExtractionResult:
    """Pages written for one attempt plus facts about the source file."""

    document: RegisteredDocument
    processed_document: ProcessedDocument
    pages_path: Path
    file_size: int
    num_pages: int
    checksum: str
    pages: list[ExtractedPage] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        return sum(page.tokens for page in self.pages)


@dataclass(frozen=True)
class SummarizeResult:
    """Summary, tags and summary vector with the tokens they cost."""

    summary: str
    tags: list[str]
    embedding: list[float]
    embedding_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class Embedding:
    """Vector for one chunk of one page; ``chunk_index`` restarts at 0 per page."""

    content: str
    vector: list[float]
    page: int
    chunk_index: int


@dataclass(frozen=True)
class EmbeddingResult:
    """Chunk vectors of one document and the embedding tokens used."""

    embeddings: list[Embedding] = field(default_factory=list)
    token_usage: int = 0
