from collections.abc import Sequence

from pgvector import Vector
from psycopg.rows import dict_row

from docprocessor.database.connection import get_connection
from docprocessor.database.exceptions import DocumentNotFoundError
from docprocessor.database.mappers import to_chunk
from docprocessor.database.models import ProcessedDocumentChunk
from docprocessor.processor.models import Embedding


class ChunksRepository:
    """Database operations for the processed_document_chunks table.

    Regenerated vectors go through a two-phase protocol: ``write_candidate``
    fills ``embedding_temp`` and ``promote_candidate`` moves it into
    ``embedding`` in a single UPDATE, so readers never see a partial vector.
    """

    async def insert_many(
        self, processed_document_id: int, embeddings: Sequence[Embedding]
    ) -> None:
        if not embeddings:
            return
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.executemany(
                    """
                    INSERT INTO processed_document_chunks
                        (processed_document_id, content, page, chunk_index, embedding)
                    VALUES (%s, %s, %s, %s, %s)
                    """,
                    [
                        (
                            processed_document_id,
                            e.content,
                            e.page,
                            e.chunk_index,
                            Vector(list(e.vector)),
                        )
                        for e in embeddings
                    ],
                )
            await conn.commit()

    async def find_by_processed_document(
        self, processed_document_id: int
    ) -> list[ProcessedDocumentChunk]:
        """Chunks in page/chunk order; vectors are not loaded."""
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """
                    SELECT id, processed_document_id, content, page, chunk_index
                    FROM processed_document_chunks
                    WHERE processed_document_id = %s
                    ORDER BY page, chunk_index
                    """,
                    (processed_document_id,),
                )
                rows = await cur.fetchall()
        return [to_chunk(row) for row in rows]

    async def write_candidate(self, chunk_id: int, vector: Sequence[float]) -> None:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE processed_document_chunks
                    SET embedding_temp = %s
                    WHERE id = %s
                    """,
                    (Vector(list(vector)), chunk_id),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Chunk {chunk_id} not found")
            await conn.commit()

    async def promote_candidate(self, chunk_id: int) -> bool:
        """Swap in the candidate vector. Returns False if there was none."""
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE processed_document_chunks
                    SET embedding = embedding_temp, embedding_temp = NULL
                    WHERE id = %s AND embedding_temp IS NOT NULL
                    """,
                    (chunk_id,),
                )
                promoted = cur.rowcount > 0
            await conn.commit()
        return promoted

    async def promote_candidates(self, processed_document_id: int) -> int:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """
                    UPDATE processed_document_chunks
                    SET embedding = embedding_temp, embedding_temp = NULL
                    WHERE processed_document_id = %s AND embedding_temp IS NOT NULL
                    """,
                    (processed_document_id,),
                )
                promoted = cur.rowcount
            await conn.commit()
        return promoted
