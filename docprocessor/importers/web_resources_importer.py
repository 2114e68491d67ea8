from docprocessor.database.models import SourceType
from docprocessor.database.repositories.external_sources_repository import (
    ExternalSourcesRepository,
)
from docprocessor.database.repositories.registered_documents_repository import (
    RegisteredDocumentsRepository,
)
from docprocessor.importers.base import BaseDocumentImporter
from docprocessor.logging.logger import Log


class WebResourcesImporter(BaseDocumentImporter):
    """Mirrors the curated external_sources table into registered documents.

    URLs are the identity. Registered web pages whose URL is no longer listed
    are deleted only when ``allow_deletion`` is set.
    """

    document_type = SourceType.WEBPAGE.value

    def __init__(
        self,
        sources_repo: ExternalSourcesRepository,
        registered_repo: RegisteredDocumentsRepository,
        allow_deletion: bool = False,
    ) -> None:
        self._sources_repo = sources_repo
        self._registered_repo = registered_repo
        self._allow_deletion = allow_deletion

    async def import_documents(self) -> int:
        sources = await self._sources_repo.find_all()
        registered = await self._registered_repo.find_by_source_type(self.document_type)
        Log.info(
            f"{len(sources)} sources for {self.document_type}",
            already_registered=len(registered),
        )

        source_urls = {source.source_url for source in sources}
        if self._allow_deletion:
            vanished = [d for d in registered if d.source_url not in source_urls]
            for document in vanished:
                await self._registered_repo.delete(document.id)
            Log.info(f"Deleted {len(vanished)} vanished {self.document_type} documents")

        known_urls = {document.source_url for document in registered}
        added = 0
        for source in sources:
            if source.source_url in known_urls:
                continue
            await self._registered_repo.insert(
                source.source_url, self.document_type, source.metadata
            )
            known_urls.add(source.source_url)
            added += 1
        return added
