from collections.abc import Sequence

from docprocessor.importers.base import BaseDocumentImporter
from docprocessor.logging.logger import Log


class ImportRunner:
    """Run every importer in order and return the total registered."""

    def __init__(self, importers: Sequence[BaseDocumentImporter]) -> None:
        self._importers = importers

    async def run(self) -> int:
        total = 0
        for importer in self._importers:
            count = await importer.import_documents()
            Log.info(f"Imported {importer.document_type}", registered=count)
            total += count
        Log.info("Import complete", registered=total)
        return total
