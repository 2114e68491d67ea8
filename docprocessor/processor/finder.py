from docprocessor.database.models import (
    ProcessedDocument,
    RegisteredDocument,
    RegisteredDocumentHistory,
)
from docprocessor.database.repositories.processed_documents_repository import (
    ProcessedDocumentsRepository,
)
from docprocessor.database.repositories.registered_documents_repository import (
    RegisteredDocumentsRepository,
)
from docprocessor.logging.logger import Log


def is_retryable(attempt: ProcessedDocument) -> bool:
    """Stuck, or failed with a non-terminal error."""
    return attempt.is_stuck or (attempt.is_failed and not attempt.is_rejected)


def needs_processing(history: RegisteredDocumentHistory) -> bool:
    """True when no attempt exists or every attempt can be retried.

    A successful or rejected attempt keeps the document out of the work list.
    """
    return all(is_retryable(attempt) for attempt in history.attempts)


class DocumentFinder:
    """Builds the work list of a run from the complete attempt history.

    Registered documents are read in pages of ``page_size`` rows by id. With
    ``allow_deletion`` the retryable attempts of every returned document are
    deleted first, so a new attempt starts without leftovers.
    """

    PAGE_SIZE = 500

    def __init__(
        self,
        registered_repo: RegisteredDocumentsRepository,
        processed_repo: ProcessedDocumentsRepository,
        *,
        allow_deletion: bool = False,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._registered_repo = registered_repo
        self._processed_repo = processed_repo
        self._allow_deletion = allow_deletion
        self._page_size = page_size

    async def find(self) -> list[RegisteredDocument]:
        documents: list[RegisteredDocument] = []
        stale_ids: list[int] = []
        after_id = 0
        scanned = 0
        while True:
            page = await self._registered_repo.find_page_with_history(after_id, self._page_size)
            scanned += len(page)
            for history in page:
                if needs_processing(history):
                    documents.append(history.document)
                    stale_ids.extend(attempt.id for attempt in history.attempts)
            if len(page) < self._page_size:
                break
            after_id = page[-1].document.id

        if stale_ids and self._allow_deletion:
            deleted = await self._processed_repo.delete_many(stale_ids)
            Log.info("Deleted stuck or failed attempts", count=deleted)
        elif stale_ids:
            Log.info("Keeping stuck or failed attempts, deletion disabled", count=len(stale_ids))

        Log.info("Documents to process", found=len(documents), scanned=scanned)
        return documents
