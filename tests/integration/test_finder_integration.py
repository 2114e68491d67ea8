import pytest

from docprocessor.database.repositories.processed_documents_repository import (
    ProcessedDocumentsRepository,
)
from docprocessor.database.repositories.registered_documents_repository import (
    RegisteredDocumentsRepository,
)
from docprocessor.processor.finder import DocumentFinder

pytestmark = pytest.mark.integration


def _make_finder(allow_deletion: bool = True, page_size: int = 500) -> DocumentFinder:
    return DocumentFinder(
        RegisteredDocumentsRepository(),
        ProcessedDocumentsRepository(),
        allow_deletion=allow_deletion,
        page_size=page_size,
    )


class TestFinderAgainstStore:
    @pytest.mark.asyncio
    async def test_crashed_attempt_is_reclaimed(self, db: None) -> None:
        document = await RegisteredDocumentsRepository().insert(
            "https://example.org/1.pdf", "Hauptausschussprotokoll", {}
        )
        processed_repo = ProcessedDocumentsRepository()
        await processed_repo.create(document.id)

        documents = await _make_finder().find()

        assert [d.id for d in documents] == [document.id]
        assert await processed_repo.find_by_registered_document(document.id) == []

    @pytest.mark.asyncio
    async def test_completed_and_rejected_are_not_offered(self, db: None) -> None:
        registered_repo = RegisteredDocumentsRepository()
        processed_repo = ProcessedDocumentsRepository()
        done = await registered_repo.insert("https://example.org/done.pdf", "Webseite", {})
        rejected = await registered_repo.insert("https://example.org/big.pdf", "Webseite", {})
        fresh = await registered_repo.insert("https://example.org/new.pdf", "Webseite", {})
        await processed_repo.finish((await processed_repo.create(done.id)).id)
        await processed_repo.finish_with_error(
            (await processed_repo.create(rejected.id)).id, "too large", terminal=True
        )

        documents = await _make_finder(page_size=2).find()

        assert [d.id for d in documents] == [fresh.id]
        assert len(await processed_repo.find_by_registered_document(rejected.id)) == 1
