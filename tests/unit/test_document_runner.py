from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from docprocessor.database.models import ProcessedDocument, RegisteredDocument
from docprocessor.pdf.pymupdf_adapter import PyMuPdfAdapter
from docprocessor.processor.embedder import Embedder
from docprocessor.processor.exceptions import DownloadError
from docprocessor.processor.extractor import Extractor
from docprocessor.processor.processor import DocumentsProcessor
from docprocessor.processor.summarizer import Summarizer
from docprocessor.utils.retry import RetryPolicy
from docprocessor.worker.document_runner import DocumentRunner
from docprocessor.worker.models import OutcomeStatus
from tests.helpers import FakeLlmClient, build_pdf, make_extraction, word_count

FAST_RETRY = RetryPolicy(max_attempts=10, base_delay=0.0, timeout=5)


def _make_repos(processed_document: ProcessedDocument) -> dict[str, MagicMock]:
    processed_repo = MagicMock()
    processed_repo.create = AsyncMock(return_value=processed_document)
    processed_repo.record_extraction = AsyncMock()
    processed_repo.finish = AsyncMock()
    processed_repo.finish_with_error = AsyncMock()
    chunks_repo = MagicMock()
    chunks_repo.insert_many = AsyncMock()
    summaries_repo = MagicMock()
    summaries_repo.insert = AsyncMock()
    return {
        "processed_repo": processed_repo,
        "chunks_repo": chunks_repo,
        "summaries_repo": summaries_repo,
    }


def _make_processor(
    llm: FakeLlmClient,
    extractor: object,
    repos: dict[str, MagicMock],
    tmp_path: Path,
) -> DocumentsProcessor:
    return DocumentsProcessor(
        finder=MagicMock(),
        extractor=extractor,  # type: ignore[arg-type]
        summarizer=Summarizer(llm, FAST_RETRY, token_budget=1000, token_counter=word_count),
        embedder=Embedder(llm, FAST_RETRY, token_budget=100, token_counter=word_count),
        processing_directory=tmp_path,
        **repos,
    )


@pytest.fixture()
def three_page_extractor(
    write_pages: Callable[[list[str]], list[Path]],
    registered_document: RegisteredDocument,
    processed_document: ProcessedDocument,
) -> MagicMock:
    extraction = make_extraction(
        registered_document,
        processed_document,
        write_pages(["Seite eins Text", "Seite zwei Text", "Seite drei Text"]),
    )
    extractor = MagicMock()
    extractor.extract = AsyncMock(return_value=extraction)
    return extractor


class TestSmallDocumentFinishes:
    @pytest.mark.asyncio
    async def test_one_call_each_and_finished(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
        three_page_extractor: MagicMock,
    ) -> None:
        llm = FakeLlmClient(summary_words=6)
        repos = _make_repos(processed_document)
        runner = DocumentRunner(_make_processor(llm, three_page_extractor, repos, tmp_path))

        outcome = await runner.run(registered_document)

        assert outcome.status is OutcomeStatus.FINISHED
        assert len(llm.summary_prompts) == 1
        assert len(llm.tag_prompts) == 1
        assert llm.embedded.count("kurz kurz kurz kurz kurz kurz") == 1
        repos["summaries_repo"].insert.assert_awaited_once()
        repos["chunks_repo"].insert_many.assert_awaited_once()
        repos["processed_repo"].finish.assert_awaited_once_with(70)
        repos["processed_repo"].finish_with_error.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_outcome_carries_token_totals(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
        three_page_extractor: MagicMock,
    ) -> None:
        llm = FakeLlmClient(summary_words=6)
        runner = DocumentRunner(
            _make_processor(llm, three_page_extractor, _make_repos(processed_document), tmp_path)
        )

        outcome = await runner.run(registered_document)

        assert outcome.input_tokens == 20
        assert outcome.output_tokens == 6
        assert outcome.embedding_tokens == 6 + 9


class TestOversizedDocumentRejected:
    @pytest.mark.asyncio
    async def test_rejected_without_rows(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
    ) -> None:
        pdf_bytes = build_pdf(["Seite"] * 120)

        async def download(url: str, target_dir: Path) -> Path:
            target_dir.mkdir(parents=True, exist_ok=True)
            path = target_dir / "doc.pdf"
            path.write_bytes(pdf_bytes)
            return path

        downloader = MagicMock()
        downloader.download = AsyncMock(side_effect=download)
        extractor = Extractor(
            downloader=downloader,
            renderer=MagicMock(),
            pdf_extractor=PyMuPdfAdapter(),
            ocr_engine=MagicMock(),
            max_pages_limit=100,
            token_counter=word_count,
        )
        llm = FakeLlmClient()
        repos = _make_repos(processed_document)
        runner = DocumentRunner(_make_processor(llm, extractor, repos, tmp_path))

        outcome = await runner.run(registered_document)

        assert outcome.status is OutcomeStatus.REJECTED
        repos["processed_repo"].create.assert_awaited_once_with(7)
        repos["processed_repo"].finish_with_error.assert_awaited_once_with(
            70, "Document 7 has 120 pages, limit is 100", terminal=True
        )
        repos["chunks_repo"].insert_many.assert_not_awaited()
        repos["summaries_repo"].insert.assert_not_awaited()
        assert llm.summary_prompts == []


class TestCapabilityFailure:
    @pytest.mark.asyncio
    async def test_exhausted_summary_marks_failed(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
        three_page_extractor: MagicMock,
    ) -> None:
        llm = FakeLlmClient()
        llm.generate = AsyncMock(side_effect=ConnectionError("upstream unavailable"))  # type: ignore[method-assign]
        repos = _make_repos(processed_document)
        runner = DocumentRunner(_make_processor(llm, three_page_extractor, repos, tmp_path))

        outcome = await runner.run(registered_document)

        assert outcome.status is OutcomeStatus.FAILED
        assert llm.generate.await_count == 10
        repos["processed_repo"].finish_with_error.assert_awaited_once()
        attempt_id, message = repos["processed_repo"].finish_with_error.await_args.args
        assert attempt_id == 70
        assert "failed after 10 attempts: upstream unavailable" in message
        repos["processed_repo"].finish.assert_not_awaited()
        repos["chunks_repo"].insert_many.assert_awaited_once()
        repos["summaries_repo"].insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embed_failure_marks_failed(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
        three_page_extractor: MagicMock,
    ) -> None:
        llm = FakeLlmClient()
        repos = _make_repos(processed_document)
        repos["chunks_repo"].insert_many = AsyncMock(side_effect=RuntimeError("disk full"))
        runner = DocumentRunner(_make_processor(llm, three_page_extractor, repos, tmp_path))

        outcome = await runner.run(registered_document)

        assert outcome.status is OutcomeStatus.FAILED
        assert outcome.error == "disk full"
        repos["summaries_repo"].insert.assert_awaited_once()


class TestTransientExtractionFailure:
    @pytest.mark.asyncio
    async def test_attempt_left_open(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
    ) -> None:
        extractor = MagicMock()
        extractor.extract = AsyncMock(side_effect=DownloadError("connect timeout"))
        repos = _make_repos(processed_document)
        runner = DocumentRunner(_make_processor(FakeLlmClient(), extractor, repos, tmp_path))

        outcome = await runner.run(registered_document)

        assert outcome.status is OutcomeStatus.EXTRACTION_FAILED
        assert outcome.error == "connect timeout"
        repos["processed_repo"].finish.assert_not_awaited()
        repos["processed_repo"].finish_with_error.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_treated_as_transient(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
    ) -> None:
        extractor = MagicMock()
        extractor.extract = AsyncMock(side_effect=ValueError("Expecting value"))
        repos = _make_repos(processed_document)
        runner = DocumentRunner(_make_processor(FakeLlmClient(), extractor, repos, tmp_path))

        outcome = await runner.run(registered_document)

        assert outcome.status is OutcomeStatus.EXTRACTION_FAILED
        assert outcome.error == "ValueError: Expecting value"
        repos["processed_repo"].create.assert_awaited_once_with(7)
        repos["processed_repo"].finish_with_error.assert_not_awaited()


class TestReplacePrevious:
    @pytest.mark.asyncio
    async def test_success_drops_older_attempts(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
        three_page_extractor: MagicMock,
    ) -> None:
        repos = _make_repos(processed_document)
        older = ProcessedDocument(id=60, registered_document_id=7)
        repos["processed_repo"].find_by_registered_document = AsyncMock(
            return_value=[older, processed_document]
        )
        repos["processed_repo"].delete_many = AsyncMock(return_value=1)
        processor = _make_processor(FakeLlmClient(), three_page_extractor, repos, tmp_path)

        outcome = await DocumentRunner(processor, replace_previous=True).run(registered_document)

        assert outcome.status is OutcomeStatus.FINISHED
        repos["processed_repo"].delete_many.assert_awaited_once_with([60])

    @pytest.mark.asyncio
    async def test_failure_keeps_older_attempts(
        self,
        tmp_path: Path,
        registered_document: RegisteredDocument,
        processed_document: ProcessedDocument,
        three_page_extractor: MagicMock,
    ) -> None:
        repos = _make_repos(processed_document)
        repos["chunks_repo"].insert_many = AsyncMock(side_effect=RuntimeError("disk full"))
        repos["processed_repo"].delete_many = AsyncMock()
        processor = _make_processor(FakeLlmClient(), three_page_extractor, repos, tmp_path)

        outcome = await DocumentRunner(processor, replace_previous=True).run(registered_document)

        assert outcome.status is OutcomeStatus.FAILED
        repos["processed_repo"].delete_many.assert_not_awaited()
