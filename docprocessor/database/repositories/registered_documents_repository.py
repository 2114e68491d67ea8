from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from docprocessor.database.connection import get_connection
from docprocessor.database.exceptions import DocumentNotFoundError
from docprocessor.database.mappers import to_processed_document, to_registered_document
from docprocessor.database.models import (
    ProcessedDocument,
    RegisteredDocument,
    RegisteredDocumentHistory,
)

_DOCUMENT_COLUMNS = "id, source_url, source_type, registered_at, metadata"


class RegisteredDocumentsRepository:
    """Database operations for the registered_documents table."""

    async def find_page_with_history(
        self, after_id: int, limit: int
    ) -> list[RegisteredDocumentHistory]:
        """Return up to ``limit`` documents with id > ``after_id``, each with all attempts."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_DOCUMENT_COLUMNS}
                    FROM registered_documents
                    WHERE id > %s
                    ORDER BY id
                    LIMIT %s
                    """,
                    (after_id, limit),
                )
                document_rows = await cur.fetchall()
                if not document_rows:
                    return []

                await cur.execute(
                    """
                    SELECT id, registered_document_id, file_checksum, file_size,
                           num_pages, processing_started_at, processing_finished_at,
                           processing_error, processing_error_terminal
                    FROM processed_documents
                    WHERE registered_document_id = ANY(%s)
                    ORDER BY id
                    """,
                    ([row["id"] for row in document_rows],),
                )
                attempt_rows = await cur.fetchall()

        attempts: dict[int, list[ProcessedDocument]] = {}
        for row in attempt_rows:
            attempt = to_processed_document(row)
            attempts.setdefault(attempt.registered_document_id, []).append(attempt)

        histories = []
        for row in document_rows:
            document = to_registered_document(row)
            histories.append(
                RegisteredDocumentHistory(
                    document=document,
                    attempts=tuple(attempts.get(document.id, [])),
                )
            )
        return histories

    async def find_by_id(self, document_id: int) -> RegisteredDocument:
        """Raises:
        DocumentNotFoundError: if no document with this ID exists.
        """
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {_DOCUMENT_COLUMNS} FROM registered_documents WHERE id = %s",
                    (document_id,),
                )
                row = await cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Registered document {document_id} not found")
        return to_registered_document(row)

    async def find_by_source_type(self, source_type: str) -> list[RegisteredDocument]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_DOCUMENT_COLUMNS}
                    FROM registered_documents
                    WHERE source_type = %s
                    ORDER BY id
                    """,
                    (source_type,),
                )
                rows = await cur.fetchall()
        return [to_registered_document(row) for row in rows]

    async def find_latest(self, limit: int) -> list[RegisteredDocument]:
        """The ``limit`` most recently registered documents, newest first."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_DOCUMENT_COLUMNS}
                    FROM registered_documents
                    ORDER BY id DESC
                    LIMIT %s
                    """,
                    (limit,),
                )
                rows = await cur.fetchall()
        return [to_registered_document(row) for row in rows]

    async def insert(
        self,
        source_url: str,
        source_type: str,
        metadata: dict[str, Any],
    ) -> RegisteredDocument:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    INSERT INTO registered_documents
                        (source_url, source_type, registered_at, metadata)
                    VALUES (%s, %s, NOW(), %s)
                    RETURNING {_DOCUMENT_COLUMNS}
                    """,
                    (source_url, source_type, Jsonb(metadata)),
                )
                row = await cur.fetchone()
            await conn.commit()

        if row is None:
            raise DocumentNotFoundError(f"Insert of {source_url} returned no row")
        return to_registered_document(row)

    async def delete(self, document_id: int) -> None:
        async with get_connection() as conn:
            await conn.execute(
                "DELETE FROM registered_documents WHERE id = %s",
                (document_id,),
            )
            await conn.commit()
