from pathlib import Path

from docprocessor.config.settings import Settings
from docprocessor.database.models import ProcessedDocument, RegisteredDocument
from docprocessor.database.repositories.chunks_repository import ChunksRepository
from docprocessor.database.repositories.processed_documents_repository import (
    ProcessedDocumentsRepository,
)
from docprocessor.database.repositories.registered_documents_repository import (
    RegisteredDocumentsRepository,
)
from docprocessor.database.repositories.summaries_repository import SummariesRepository
from docprocessor.fetching.downloader import Downloader
from docprocessor.fetching.webpage_renderer import WebpageRenderer
from docprocessor.llm.factory import LlmClientFactory
from docprocessor.logging.logger import Log
from docprocessor.ocr.tesseract_adapter import TesseractAdapter
from docprocessor.parsing.llamaparse_client import LlamaParseClient
from docprocessor.pdf.factory import PdfExtractorFactory
from docprocessor.processor.embedder import Embedder
from docprocessor.processor.exceptions import ProcessorError
from docprocessor.processor.extractor import Extractor
from docprocessor.processor.finder import DocumentFinder
from docprocessor.processor.models import EmbeddingResult, ExtractionResult, SummarizeResult
from docprocessor.processor.summarizer import Summarizer
from docprocessor.utils.retry import RetryPolicy


class DocumentsProcessor:
    """Pipeline stages of one document, each with its store writes.

    Stages: find -> extract -> (summarize | embed) -> finish / finish_with_error.
    This class and ``DocumentRunner`` are the only writers of processing state.
    """

    def __init__(
        self,
        finder: DocumentFinder,
        extractor: Extractor,
        summarizer: Summarizer,
        embedder: Embedder,
        processed_repo: ProcessedDocumentsRepository,
        chunks_repo: ChunksRepository,
        summaries_repo: SummariesRepository,
        processing_directory: Path,
    ) -> None:
        self._finder = finder
        self._extractor = extractor
        self._summarizer = summarizer
        self._embedder = embedder
        self._processed_repo = processed_repo
        self._chunks_repo = chunks_repo
        self._summaries_repo = summaries_repo
        self._processing_directory = processing_directory

    async def find(self) -> list[RegisteredDocument]:
        return await self._finder.find()

    async def extract(self, document: RegisteredDocument) -> ExtractionResult:
        """Open a new attempt and extract the document's pages.

        The attempt row is created first and stays open (stuck) if extraction
        fails transiently. Terminal errors close it before they propagate.
        """
        processed_document = await self._processed_repo.create(document.id)
        Log.info(
            f"Extracting document {document.id}",
            processed_document=processed_document.id,
            url=document.source_url,
        )
        try:
            result = await self._extractor.extract(
                document, processed_document, self._processing_directory
            )
        except ProcessorError as exc:
            if exc.terminal:
                await self.finish_with_error(processed_document, exc)
            raise

        await self._processed_repo.record_extraction(
            processed_document.id,
            checksum=result.checksum,
            file_size=result.file_size,
            num_pages=result.num_pages,
        )
        return result

    async def summarize(self, extraction: ExtractionResult) -> SummarizeResult:
        result = await self._summarizer.summarize(extraction)
        await self._summaries_repo.insert(
            extraction.processed_document.id,
            summary=result.summary,
            embedding=result.embedding,
            tags=result.tags,
        )
        return result

    async def embed(self, extraction: ExtractionResult) -> EmbeddingResult:
        result = await self._embedder.embed(extraction)
        await self._chunks_repo.insert_many(extraction.processed_document.id, result.embeddings)
        return result

    async def finish(self, processed_document: ProcessedDocument) -> None:
        await self._processed_repo.finish(processed_document.id)
        Log.info(f"Finished processed document {processed_document.id}")

    async def drop_previous_attempts(self, processed_document: ProcessedDocument) -> int:
        """Delete every other attempt of the same document, with its chunks and summary."""
        attempts = await self._processed_repo.find_by_registered_document(
            processed_document.registered_document_id
        )
        stale = [a.id for a in attempts if a.id != processed_document.id]
        if not stale:
            return 0
        deleted = await self._processed_repo.delete_many(stale)
        Log.info(
            f"Replaced {deleted} earlier attempts of document "
            f"{processed_document.registered_document_id}",
            processed_document=processed_document.id,
        )
        return deleted

    async def finish_with_error(
        self, processed_document: ProcessedDocument, error: Exception | str
    ) -> None:
        terminal = isinstance(error, ProcessorError) and error.terminal
        await self._processed_repo.finish_with_error(
            processed_document.id, str(error), terminal=terminal
        )
        Log.error(
            f"Processed document {processed_document.id} failed: {error}",
            terminal=terminal,
        )


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay_seconds,
        multiplier=settings.retry_multiplier,
        max_delay=settings.retry_max_delay_seconds,
        timeout=settings.capability_timeout_seconds,
    )


def build_embedder(settings: Settings) -> Embedder:
    return Embedder(
        LlmClientFactory.create(settings),
        build_retry_policy(settings),
        token_budget=settings.embedding_token_budget,
        batch_size=settings.embedding_batch_size,
        encoding_name=settings.tokenizer_encoding,
    )


def build_processor(settings: Settings) -> DocumentsProcessor:
    """Build a DocumentsProcessor with all required adapters."""
    llm_client = LlmClientFactory.create(settings)
    retry_policy = build_retry_policy(settings)
    processed_repo = ProcessedDocumentsRepository()

    remote_parser = None
    if settings.remote_parse_enabled:
        remote_parser = LlamaParseClient(
            api_key=settings.llamaparse_api_key,
            base_url=settings.llamaparse_base_url,
            poll_interval_seconds=settings.llamaparse_poll_interval_seconds,
            timeout_seconds=settings.llamaparse_timeout_seconds,
            request_timeout_seconds=settings.download_timeout_seconds,
        )

    extractor = Extractor(
        downloader=Downloader(timeout_seconds=settings.download_timeout_seconds),
        renderer=WebpageRenderer(timeout_seconds=settings.download_timeout_seconds),
        pdf_extractor=PdfExtractorFactory.create(settings),
        ocr_engine=TesseractAdapter(),
        remote_parser=remote_parser,
        max_pages_limit=settings.max_pages_limit,
        remote_parse_page_threshold=settings.remote_parse_page_threshold,
        ocr_language=settings.ocr_language,
        ocr_min_text_length=settings.ocr_min_text_length,
        ocr_render_dpi=settings.ocr_render_dpi,
        encoding_name=settings.tokenizer_encoding,
    )
    summarizer = Summarizer(
        llm_client,
        retry_policy,
        token_budget=settings.summary_token_budget,
        batch_size=settings.summary_batch_size,
        max_levels=settings.summary_max_levels,
        max_tags=settings.max_tags,
        encoding_name=settings.tokenizer_encoding,
    )
    embedder = Embedder(
        llm_client,
        retry_policy,
        token_budget=settings.embedding_token_budget,
        batch_size=settings.embedding_batch_size,
        encoding_name=settings.tokenizer_encoding,
    )
    finder = DocumentFinder(
        RegisteredDocumentsRepository(),
        processed_repo,
        allow_deletion=settings.allow_deletion,
    )
    return DocumentsProcessor(
        finder=finder,
        extractor=extractor,
        summarizer=summarizer,
        embedder=embedder,
        processed_repo=processed_repo,
        chunks_repo=ChunksRepository(),
        summaries_repo=SummariesRepository(),
        processing_directory=settings.processing_directory,
    )
