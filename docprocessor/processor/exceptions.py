from docprocessor.database.models import RegisteredDocument


class ProcessorError(Exception):
    """Base exception for all pipeline errors.

    ``terminal`` errors are recorded as final for the document and are never
    retried automatically; all others leave it eligible for a later run.
    """

    terminal: bool = False


class DocumentTooLargeError(ProcessorError):
    """Raised when a document has more pages than the configured ceiling."""

    terminal = True

    def __init__(self, document: RegisteredDocument, page_count: int, limit: int) -> None:
        self.document = document
        self.page_count = page_count
        self.limit = limit
        super().__init__(
            f"Document {document.id} has {page_count} pages, limit is {limit}"
        )


class DownloadError(ProcessorError):
    """Raised when the source artifact cannot be downloaded or rendered."""


class ExtractionError(ProcessorError):
    """Raised when pages cannot be split, converted or written."""


class EmptyExtractionError(ProcessorError):
    """Raised when no page of a document yields any text."""

    terminal = True


class SummarizationNotConvergedError(ProcessorError):
    """Raised when recursive reduction does not fit the budget within the level cap."""
