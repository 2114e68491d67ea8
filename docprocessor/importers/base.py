from abc import ABC, abstractmethod


class BaseDocumentImporter(ABC):
    """Contract for importers that register documents of one source type."""

    document_type: str

    @abstractmethod
    async def import_documents(self) -> int:
        """Register new documents from the source.

        Returns:
            Number of documents newly registered.
        """
