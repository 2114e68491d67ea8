from collections.abc import Sequence

from psycopg.rows import dict_row

from docprocessor.database.connection import get_connection
from docprocessor.database.exceptions import DocumentNotFoundError
from docprocessor.database.mappers import to_processed_document
from docprocessor.database.models import ProcessedDocument

_COLUMNS = (
    "id, registered_document_id, file_checksum, file_size, num_pages, "
    "processing_started_at, processing_finished_at, processing_error, "
    "processing_error_terminal"
)


class ProcessedDocumentsRepository:
    """Database operations for the processed_documents table.

    This is the only writer of processing state: a row is created when an
    attempt starts and closed by ``finish`` or ``finish_with_error``.
    """

    async def create(self, registered_document_id: int) -> ProcessedDocument:
        """Insert an in-flight attempt (started now, not finished)."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    INSERT INTO processed_documents
                        (registered_document_id, processing_started_at)
                    VALUES (%s, NOW())
                    RETURNING {_COLUMNS}
                    """,
                    (registered_document_id,),
                )
                row = await cur.fetchone()
            await conn.commit()

        if row is None:
            raise DocumentNotFoundError(
                f"Could not create processed document for {registered_document_id}"
            )
        return to_processed_document(row)

    async def record_extraction(
        self,
        processed_document_id: int,
        *,
        checksum: str,
        file_size: int,
        num_pages: int,
    ) -> ProcessedDocument:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    UPDATE processed_documents
                    SET file_checksum = %s, file_size = %s, num_pages = %s
                    WHERE id = %s
                    RETURNING {_COLUMNS}
                    """,
                    (checksum, file_size, num_pages, processed_document_id),
                )
                row = await cur.fetchone()
            await conn.commit()

        if row is None:
            raise DocumentNotFoundError(
                f"Processed document {processed_document_id} not found"
            )
        return to_processed_document(row)

    async def finish(self, processed_document_id: int) -> None:
        await self._close(processed_document_id, error=None, terminal=False)

    async def finish_with_error(
        self,
        processed_document_id: int,
        error: str,
        *,
        terminal: bool = False,
    ) -> None:
        await self._close(processed_document_id, error=error, terminal=terminal)

    async def delete_many(self, processed_document_ids: Sequence[int]) -> int:
        """Delete attempts together with their chunks and summaries in one transaction."""
        if not processed_document_ids:
            return 0
        ids = list(processed_document_ids)
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "DELETE FROM processed_document_chunks "
                    "WHERE processed_document_id = ANY(%s)",
                    (ids,),
                )
                await cur.execute(
                    "DELETE FROM processed_document_summaries "
                    "WHERE processed_document_id = ANY(%s)",
                    (ids,),
                )
                await cur.execute(
                    "DELETE FROM processed_documents WHERE id = ANY(%s)",
                    (ids,),
                )
                deleted = cur.rowcount
            await conn.commit()
        return deleted

    async def find_by_registered_document(
        self, registered_document_id: int
    ) -> list[ProcessedDocument]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM processed_documents
                    WHERE registered_document_id = %s
                    ORDER BY id
                    """,
                    (registered_document_id,),
                )
                rows = await cur.fetchall()
        return [to_processed_document(row) for row in rows]

    async def find_completed(self, limit: int | None = None) -> list[ProcessedDocument]:
        """Successfully finished attempts, newest first."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM processed_documents
                    WHERE processing_finished_at IS NOT NULL
                      AND processing_error IS NULL
                    ORDER BY id DESC
                    LIMIT %s
                    """,
                    (limit,),
                )
                rows = await cur.fetchall()
        return [to_processed_document(row) for row in rows]

    async def _close(
        self, processed_document_id: int, *, error: str | None, terminal: bool
    ) -> None:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE processed_documents
                    SET processing_finished_at = NOW(),
                        processing_error = %s,
                        processing_error_terminal = %s
                    WHERE id = %s
                    """,
                    (error, terminal, processed_document_id),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(
                        f"Processed document {processed_document_id} not found"
                    )
            await conn.commit()
