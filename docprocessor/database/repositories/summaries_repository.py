from collections.abc import Sequence

from pgvector import Vector
from psycopg.rows import dict_row

from docprocessor.database.connection import get_connection
from docprocessor.database.exceptions import DocumentNotFoundError
from docprocessor.database.mappers import to_summary
from docprocessor.database.models import ProcessedDocumentSummary


class SummariesRepository:
    """Database operations for the processed_document_summaries table."""

    async def insert(
        self,
        processed_document_id: int,
        *,
        summary: str,
        embedding: Sequence[float],
        tags: Sequence[str],
    ) -> None:
        async with get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO processed_document_summaries
                    (processed_document_id, summary, summary_embedding, tags)
                VALUES (%s, %s, %s, %s)
                """,
                (processed_document_id, summary, Vector(list(embedding)), list(tags)),
            )
            await conn.commit()

    async def find_by_processed_document(
        self, processed_document_id: int
    ) -> ProcessedDocumentSummary | None:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """
                    SELECT id, processed_document_id, summary, tags
                    FROM processed_document_summaries
                    WHERE processed_document_id = %s
                    ORDER BY id
                    LIMIT 1
                    """,
                    (processed_document_id,),
                )
                row = await cur.fetchone()
        return to_summary(row) if row is not None else None

    async def write_candidate(self, summary_id: int, vector: Sequence[float]) -> None:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE processed_document_summaries
                    SET summary_embedding_temp = %s
                    WHERE id = %s
                    """,
                    (Vector(list(vector)), summary_id),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Summary {summary_id} not found")
            await conn.commit()

    async def promote_candidate(self, summary_id: int) -> bool:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE processed_document_summaries
                    SET summary_embedding = summary_embedding_temp,
                        summary_embedding_temp = NULL
                    WHERE id = %s AND summary_embedding_temp IS NOT NULL
                    """,
                    (summary_id,),
                )
                promoted = cur.rowcount > 0
            await conn.commit()
        return promoted
