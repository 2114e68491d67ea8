"""Re-embedding of already processed documents without re-extraction.

``regenerate`` only writes candidate vectors next to the live ones.
``promote`` is the separate cut-over that moves each candidate into the live
field with one UPDATE, so a reader sees either the old or the new vector.
"""

import asyncio
from dataclasses import dataclass

from docprocessor.database.models import ProcessedDocument
from docprocessor.database.repositories.chunks_repository import ChunksRepository
from docprocessor.database.repositories.processed_documents_repository import (
    ProcessedDocumentsRepository,
)
from docprocessor.database.repositories.summaries_repository import SummariesRepository
from docprocessor.logging.logger import Log
from docprocessor.processor.embedder import Embedder
from docprocessor.utils.batching import batched


@dataclass
class RegenerationReport:
    """Counts from one regeneration pass."""

    documents: int = 0
    failed: int = 0
    chunks: int = 0
    summaries: int = 0
    token_usage: int = 0


@dataclass
class PromotionReport:
    """Counts from one promotion pass."""

    documents: int = 0
    chunks: int = 0
    summaries: int = 0


class EmbeddingRegenerator:
    """Re-embeds completed documents into candidate columns and promotes them."""

    def __init__(
        self,
        processed_repo: ProcessedDocumentsRepository,
        chunks_repo: ChunksRepository,
        summaries_repo: SummariesRepository,
        embedder: Embedder,
        batch_size: int = 5,
    ) -> None:
        self._processed_repo = processed_repo
        self._chunks_repo = chunks_repo
        self._summaries_repo = summaries_repo
        self._embedder = embedder
        self._batch_size = batch_size

    async def regenerate(self) -> RegenerationReport:
        report = RegenerationReport()
        documents = await self._processed_repo.find_completed()
        Log.info("Regenerating embeddings", documents=len(documents))

        for batch in batched(documents, self._batch_size):
            results = await asyncio.gather(
                *(self._regenerate_document(document, report) for document in batch),
                return_exceptions=True,
            )
            for document, result in zip(batch, results):
                if isinstance(result, Exception):
                    report.failed += 1
                    Log.error(
                        f"Regeneration of processed document {document.id} failed: {result}"
                    )
                elif isinstance(result, BaseException):
                    raise result
                else:
                    report.documents += 1

        Log.info(
            "Regeneration complete",
            documents=report.documents,
            failed=report.failed,
            chunks=report.chunks,
            summaries=report.summaries,
            tokens=report.token_usage,
        )
        return report

    async def promote(self) -> PromotionReport:
        report = PromotionReport()
        for document in await self._processed_repo.find_completed():
            report.chunks += await self._chunks_repo.promote_candidates(document.id)
            summary = await self._summaries_repo.find_by_processed_document(document.id)
            if summary is not None and await self._summaries_repo.promote_candidate(summary.id):
                report.summaries += 1
            report.documents += 1
        Log.info(
            "Promoted regenerated embeddings",
            documents=report.documents,
            chunks=report.chunks,
            summaries=report.summaries,
        )
        return report

    async def _regenerate_document(
        self, document: ProcessedDocument, report: RegenerationReport
    ) -> None:
        chunks = await self._chunks_repo.find_by_processed_document(document.id)
        vectors = await self._embedder.embed_texts([chunk.content for chunk in chunks])
        for chunk, vector in zip(chunks, vectors):
            await self._chunks_repo.write_candidate(chunk.id, vector.vector)
            report.chunks += 1
            report.token_usage += vector.token_usage

        summary = await self._summaries_repo.find_by_processed_document(document.id)
        if summary is None:
            return
        (vector,) = await self._embedder.embed_texts([summary.summary])
        await self._summaries_repo.write_candidate(summary.id, vector.vector)
        report.summaries += 1
        report.token_usage += vector.token_usage
