from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest

from docprocessor.database.models import ProcessedDocument, RegisteredDocument
from tests.helpers import PdfFactory, build_pdf


@pytest.fixture()
def pdf_factory() -> PdfFactory:
    return build_pdf


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """A single page with a short, known line of text."""
    return build_pdf(["Hello PDF World"])


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    return build_pdf(["Page one content", "Page two content"])


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """A valid PDF whose only page has no text layer."""
    return build_pdf([""])


@pytest.fixture()
def registered_document() -> RegisteredDocument:
    return RegisteredDocument(
        id=7,
        source_url="https://pardok.example/drucksachen/19-12345.pdf",
        source_type="Schriftliche Anfrage",
        registered_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        metadata={"title": "Radwege in Pankow"},
    )


@pytest.fixture()
def processed_document() -> ProcessedDocument:
    return ProcessedDocument(
        id=70,
        registered_document_id=7,
        processing_started_at=datetime(2024, 3, 2, tzinfo=timezone.utc),
    )


@pytest.fixture()
def write_pages(tmp_path: Path) -> Callable[[list[str]], list[Path]]:
    """Write page texts as page-0001.md, ... and return their paths."""

    def _write(texts: list[str]) -> list[Path]:
        paths = []
        for number, text in enumerate(texts, start=1):
            path = tmp_path / f"page-{number:04d}.md"
            path.write_text(text, encoding="utf-8")
            paths.append(path)
        return paths

    return _write
