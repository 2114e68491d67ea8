import asyncio

from docprocessor.database.models import RegisteredDocument
from docprocessor.logging.logger import Log
from docprocessor.processor.exceptions import ProcessorError
from docprocessor.processor.models import EmbeddingResult, SummarizeResult
from docprocessor.processor.processor import DocumentsProcessor
from docprocessor.worker.models import DocumentOutcome, OutcomeStatus


class DocumentRunner:
    """Drive one document through extract -> (summarize | embed) -> finish.

    With ``replace_previous`` a successful run also deletes the document's
    earlier attempts, so a reprocessed document keeps a single result.
    """

    def __init__(self, processor: DocumentsProcessor, *, replace_previous: bool = False) -> None:
        self._processor = processor
        self._replace_previous = replace_previous

    async def run(self, document: RegisteredDocument) -> DocumentOutcome:
        Log.info(f"Processing document {document.id}", source_type=document.source_type)
        try:
            extraction = await self._processor.extract(document)
        except ProcessorError as exc:
            return self._extraction_failure(document, exc)
        except Exception as exc:
            Log.exception(f"Extraction of document {document.id} crashed, will retry next run")
            return DocumentOutcome(
                document.id, OutcomeStatus.EXTRACTION_FAILED, error=f"{type(exc).__name__}: {exc}"
            )

        summarized, embedded = await asyncio.gather(
            self._processor.summarize(extraction),
            self._processor.embed(extraction),
            return_exceptions=True,
        )
        for result in (summarized, embedded):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        summary = summarized if isinstance(summarized, SummarizeResult) else None
        embedding = embedded if isinstance(embedded, EmbeddingResult) else None
        tokens = {
            "embedding_tokens": (summary.embedding_tokens if summary else 0)
            + (embedding.token_usage if embedding else 0),
            "input_tokens": summary.input_tokens if summary else 0,
            "output_tokens": summary.output_tokens if summary else 0,
        }

        errors = [r for r in (summarized, embedded) if isinstance(r, Exception)]
        if errors:
            message = "; ".join(str(error) for error in errors)
            await self._processor.finish_with_error(extraction.processed_document, message)
            return DocumentOutcome(document.id, OutcomeStatus.FAILED, error=message, **tokens)

        await self._processor.finish(extraction.processed_document)
        if self._replace_previous:
            await self._processor.drop_previous_attempts(extraction.processed_document)
        return DocumentOutcome(document.id, OutcomeStatus.FINISHED, **tokens)

    def _extraction_failure(
        self, document: RegisteredDocument, exc: ProcessorError
    ) -> DocumentOutcome:
        if exc.terminal:
            Log.error(f"Document {document.id} rejected: {exc}")
            return DocumentOutcome(document.id, OutcomeStatus.REJECTED, error=str(exc))
        Log.error(f"Extraction of document {document.id} failed, will retry next run: {exc}")
        return DocumentOutcome(document.id, OutcomeStatus.EXTRACTION_FAILED, error=str(exc))
