from psycopg.rows import dict_row

from docprocessor.database.connection import get_connection
from docprocessor.database.mappers import to_external_source
from docprocessor.database.models import ExternalSource


class ExternalSourcesRepository:
    """Read access to the curated external_sources table."""

    async def find_all(self) -> list[ExternalSource]:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute("SELECT * FROM external_sources ORDER BY id")
                rows = await cur.fetchall()
        return [to_external_source(row) for row in rows]
