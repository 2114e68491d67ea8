import asyncio
import io
import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from docprocessor.database.models import ProcessedDocument, RegisteredDocument
from docprocessor.llm.client_base import BaseLlmClient
from docprocessor.llm.models import EmbeddingVector, TextGeneration
from docprocessor.processor.models import ExtractedPage, ExtractionResult

PdfFactory = Callable[[list[str]], bytes]


def build_pdf(page_texts: list[str]) -> bytes:
    """One page per entry; an empty string gives a blank page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    for text in page_texts:
        if text:
            c.drawString(72, 760, text)
        c.showPage()
    c.save()
    return buf.getvalue()


def word_count(text: str) -> int:
    """Deterministic stand-in for the model tokenizer: one token per word."""
    return len(text.split())


def mock_connection(mock_get_conn: MagicMock) -> tuple[MagicMock, AsyncMock]:
    """Wire up an async mock connection + cursor and return (mock_conn, mock_cursor)."""
    mock_cursor = AsyncMock()
    mock_cursor.rowcount = 1
    mock_conn = MagicMock()
    mock_conn.commit = AsyncMock()
    mock_conn.execute = AsyncMock()
    mock_conn.cursor.return_value.__aenter__ = AsyncMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__aexit__ = AsyncMock(return_value=False)
    mock_get_conn.return_value.__aenter__ = AsyncMock(return_value=mock_conn)
    mock_get_conn.return_value.__aexit__ = AsyncMock(return_value=False)
    return mock_conn, mock_cursor


def make_extraction(
    document: RegisteredDocument,
    processed_document: ProcessedDocument,
    page_paths: list[Path],
    counter: Callable[[str], int] = word_count,
) -> ExtractionResult:
    pages = [
        ExtractedPage(page=number, path=path, tokens=counter(path.read_text(encoding="utf-8")))
        for number, path in enumerate(page_paths, start=1)
    ]
    return ExtractionResult(
        document=document,
        processed_document=processed_document,
        pages_path=page_paths[0].parent if page_paths else Path("."),
        file_size=1024,
        num_pages=len(pages),
        checksum="c" * 64,
        pages=pages,
    )


class FakeLlmClient(BaseLlmClient):
    """Scripted provider: fixed-length summaries, fixed tags, tiny vectors."""

    def __init__(
        self,
        summary_words: int = 5,
        tags: tuple[str, ...] = ("Verkehr", "Radwege"),
        input_tokens: int = 10,
        output_tokens: int = 3,
    ) -> None:
        self.summary_words = summary_words
        self.tags = tags
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.summary_prompts: list[str] = []
        self.tag_prompts: list[str] = []
        self.embedded: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        json_output: bool = False,
    ) -> TextGeneration:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        if json_output:
            self.tag_prompts.append(user_prompt)
            text = json.dumps({"tags": list(self.tags)})
        else:
            self.summary_prompts.append(user_prompt)
            text = " ".join(["kurz"] * self.summary_words)
        return TextGeneration(text, self.input_tokens, self.output_tokens)

    async def embed(self, text: str) -> EmbeddingVector:
        self.embedded.append(text)
        return EmbeddingVector(vector=[0.1, 0.2, 0.3], token_usage=word_count(text))
