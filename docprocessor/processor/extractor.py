import asyncio
import hashlib
from functools import partial
from pathlib import Path

from docprocessor.database.models import ProcessedDocument, RegisteredDocument
from docprocessor.fetching.downloader import Downloader
from docprocessor.fetching.exceptions import FetchError
from docprocessor.fetching.webpage_renderer import WebpageRenderer
from docprocessor.logging.logger import Log
from docprocessor.ocr.base import BaseOcrEngine
from docprocessor.ocr.exceptions import OcrError
from docprocessor.parsing.exceptions import RemoteParseError
from docprocessor.parsing.llamaparse_client import LlamaParseClient
from docprocessor.pdf.base import BasePdfExtractor
from docprocessor.pdf.exceptions import PdfExtractionError, PdfPageError
from docprocessor.pdf.pages import count_pages, page_stem, render_page_png, split_pages
from docprocessor.processor.exceptions import (
    DocumentTooLargeError,
    DownloadError,
    EmptyExtractionError,
    ExtractionError,
)
from docprocessor.processor.models import ExtractedPage, ExtractionResult
from docprocessor.text.splitter import TokenCounter
from docprocessor.text.token_counter import count_tokens


def file_checksum(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for block in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(block)
    return digest.hexdigest()


class Extractor:
    """Turns a registered document into one markdown file per page.

    Layout below the working directory::

        <document id>/source.pdf | <downloaded name>.pdf
        <document id>/split/page-0001.pdf ...
        <document id>/pages/page-0001.md ...

    Documents with at most ``remote_parse_page_threshold`` pages go to the
    remote parser when one is configured; all others are split locally and
    converted page by page, with OCR for pages whose text layer is too short.
    """

    def __init__(
        self,
        *,
        downloader: Downloader,
        renderer: WebpageRenderer,
        pdf_extractor: BasePdfExtractor,
        ocr_engine: BaseOcrEngine,
        remote_parser: LlamaParseClient | None = None,
        max_pages_limit: int = 100,
        remote_parse_page_threshold: int = 0,
        ocr_language: str = "deu",
        ocr_min_text_length: int = 32,
        ocr_render_dpi: int = 300,
        encoding_name: str = "cl100k_base",
        token_counter: TokenCounter | None = None,
    ) -> None:
        self._downloader = downloader
        self._renderer = renderer
        self._pdf_extractor = pdf_extractor
        self._ocr_engine = ocr_engine
        self._remote_parser = remote_parser
        self._max_pages_limit = max_pages_limit
        self._remote_parse_page_threshold = remote_parse_page_threshold
        self._ocr_language = ocr_language
        self._ocr_min_text_length = ocr_min_text_length
        self._ocr_render_dpi = ocr_render_dpi
        self._count_tokens = token_counter or partial(count_tokens, encoding_name=encoding_name)

    async def extract(
        self,
        document: RegisteredDocument,
        processed_document: ProcessedDocument,
        working_directory: Path,
    ) -> ExtractionResult:
        """Raises:
        DocumentTooLargeError: page count above ``max_pages_limit``.
        DownloadError: the artifact could not be fetched.
        ExtractionError: splitting, conversion or writing failed.
        EmptyExtractionError: no page produced any text.
        """
        document_dir = working_directory / str(document.id)
        source = await self._resolve_artifact(document, document_dir)

        try:
            num_pages = await asyncio.to_thread(count_pages, source)
        except PdfPageError as exc:
            raise ExtractionError(str(exc)) from exc
        if num_pages > self._max_pages_limit:
            raise DocumentTooLargeError(document, num_pages, self._max_pages_limit)

        remote_parser = self._remote_parser_for(num_pages)
        if remote_parser is not None:
            Log.info(f"Parsing document {document.id} remotely", pages=num_pages)
            texts = await self._extract_remotely(remote_parser, source)
        else:
            texts = await self._extract_locally(source, document_dir / "split")

        if not any(text.strip() for text in texts):
            raise EmptyExtractionError(f"Document {document.id} yielded no text")

        pages = self._write_pages(texts, document_dir / "pages")
        try:
            file_size = source.stat().st_size
            checksum = await asyncio.to_thread(file_checksum, source)
        except OSError as exc:
            raise ExtractionError(f"Cannot read {source.name}: {exc}") from exc
        result = ExtractionResult(
            document=document,
            processed_document=processed_document,
            pages_path=document_dir / "pages",
            file_size=file_size,
            num_pages=num_pages,
            checksum=checksum,
            pages=pages,
        )
        Log.info(
            f"Extracted document {document.id}",
            pages=num_pages,
            tokens=result.total_tokens,
        )
        return result

    async def _resolve_artifact(self, document: RegisteredDocument, document_dir: Path) -> Path:
        try:
            if document.is_webpage:
                return await self._renderer.render(
                    document.source_url, document_dir / "source.pdf"
                )
            return await self._downloader.download(document.source_url, document_dir)
        except FetchError as exc:
            raise DownloadError(str(exc)) from exc

    def _remote_parser_for(self, num_pages: int) -> LlamaParseClient | None:
        if num_pages <= self._remote_parse_page_threshold:
            return self._remote_parser
        return None

    async def _extract_remotely(self, parser: LlamaParseClient, source: Path) -> list[str]:
        try:
            return await parser.parse(source)
        except RemoteParseError as exc:
            raise ExtractionError(f"Remote parse of {source.name} failed: {exc}") from exc

    async def _extract_locally(self, source: Path, split_dir: Path) -> list[str]:
        try:
            page_paths = await asyncio.to_thread(split_pages, source, split_dir)
        except PdfPageError as exc:
            raise ExtractionError(str(exc)) from exc
        return [
            await self._extract_page(page, path)
            for page, path in enumerate(page_paths, start=1)
        ]

    async def _extract_page(self, page: int, page_path: Path) -> str:
        """Text layer of one page, or its OCR text when the layer is too short.

        OCR problems are logged and leave the page with whatever text it had.
        """
        try:
            page_pdf = page_path.read_bytes()
        except OSError as exc:
            raise ExtractionError(f"Cannot read split page {page_path.name}: {exc}") from exc
        try:
            text = await asyncio.to_thread(self._pdf_extractor.extract, page_pdf)
        except PdfExtractionError as exc:
            Log.warning(f"Text layer of page {page} unreadable", file=page_path.name, cause=exc)
            text = ""
        if len(text) >= self._ocr_min_text_length:
            return text

        try:
            image = await asyncio.to_thread(render_page_png, page_pdf, self._ocr_render_dpi)
            recognized = await asyncio.to_thread(
                self._ocr_engine.recognize, image, self._ocr_language
            )
        except (PdfPageError, OcrError) as exc:
            Log.warning(f"OCR of page {page} failed", file=page_path.name, cause=exc)
            return text
        Log.debug(f"OCR used for page {page}", chars=len(recognized))
        return recognized if len(recognized) > len(text) else text

    def _write_pages(self, texts: list[str], pages_dir: Path) -> list[ExtractedPage]:
        pages: list[ExtractedPage] = []
        try:
            pages_dir.mkdir(parents=True, exist_ok=True)
            for page, text in enumerate(texts, start=1):
                path = pages_dir / f"{page_stem(page)}.md"
                path.write_text(text, encoding="utf-8")
                pages.append(ExtractedPage(page=page, path=path, tokens=self._count_tokens(text)))
        except OSError as exc:
            raise ExtractionError(f"Cannot write pages to {pages_dir}: {exc}") from exc
        return pages
