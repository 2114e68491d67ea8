import asyncio
import shutil

from docprocessor.config.settings import Settings
from docprocessor.database.models import RegisteredDocument
from docprocessor.logging.logger import Log
from docprocessor.processor.processor import DocumentsProcessor
from docprocessor.utils.batching import batched
from docprocessor.worker.document_runner import DocumentRunner
from docprocessor.worker.models import DocumentOutcome, OutcomeStatus, RunReport


class BatchWorker:
    """One processing run: find, then process in sequential concurrent batches."""

    def __init__(
        self,
        processor: DocumentsProcessor,
        runner: DocumentRunner,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._runner = runner
        self._settings = settings

    async def run(self) -> RunReport:
        """Process whatever the finder offers."""
        return await self.process(await self._processor.find())

    async def process(self, documents: list[RegisteredDocument]) -> RunReport:
        """Process ``documents`` in order, at most ``max_documents_per_run`` of them."""
        report = RunReport()
        report.found = len(documents)

        cap = self._settings.max_documents_per_run
        if len(documents) > cap:
            Log.warning(f"Processing only {cap} of {len(documents)} documents this run")
            documents = documents[:cap]

        batches = batched(documents, self._settings.processing_batch_size)
        for number, batch in enumerate(batches, start=1):
            Log.info(f"Starting batch {number}/{len(batches)}", documents=len(batch))
            try:
                results = await asyncio.gather(
                    *(self._runner.run(d) for d in batch), return_exceptions=True
                )
            finally:
                self._clear_working_directory()
            for document, result in zip(batch, results):
                report.record(self._to_outcome(document, result))

        self._log_report(report)
        return report

    @staticmethod
    def _to_outcome(
        document: RegisteredDocument, result: DocumentOutcome | BaseException
    ) -> DocumentOutcome:
        if isinstance(result, DocumentOutcome):
            return result
        if not isinstance(result, Exception):
            raise result
        Log.error(
            f"Document {document.id} failed outside the pipeline: {result}",
            error_type=type(result).__name__,
        )
        return DocumentOutcome(document.id, OutcomeStatus.FAILED, error=str(result))

    def _clear_working_directory(self) -> None:
        directory = self._settings.processing_directory
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)

    def _log_report(self, report: RunReport) -> None:
        Log.info(
            "Run complete",
            found=report.found,
            attempted=report.attempted,
            finished=report.finished,
            failed=report.failed,
            rejected=report.rejected,
            extraction_failed=report.extraction_failed,
        )
        Log.info(
            "Token usage",
            input=report.input_tokens,
            output=report.output_tokens,
            embedding=report.embedding_tokens,
            cost=f"{report.estimated_cost(self._settings):.4f}",
        )
