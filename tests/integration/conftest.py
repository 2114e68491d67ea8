import os
from collections.abc import AsyncGenerator
from pathlib import Path

import psycopg
import pytest
import pytest_asyncio

from docprocessor.config.settings import Settings
from docprocessor.database.connection import (
    build_conninfo,
    close_pool,
    get_connection,
    init_pool,
)

SCHEMA = Path(__file__).parents[2] / "docprocessor" / "database" / "schema.sql"

TABLES = (
    "processed_document_chunks",
    "processed_document_summaries",
    "processed_documents",
    "registered_documents",
    "external_sources",
)


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "documents_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest_asyncio.fixture
async def db(test_settings: Settings) -> AsyncGenerator[None, None]:
    """Pool on a clean schema; every table is emptied after the test.

    The schema (and with it the vector extension) is applied before the pool
    opens, since pooled connections register the pgvector adapters.
    """
    try:
        async with await psycopg.AsyncConnection.connect(
            build_conninfo(test_settings)
        ) as conn:
            await conn.execute(SCHEMA.read_text(encoding="utf-8"))
            await conn.commit()
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env vars.")

    await init_pool(test_settings)
    try:
        yield
    finally:
        async with get_connection() as conn:
            await conn.execute(f"TRUNCATE {', '.join(TABLES)} RESTART IDENTITY CASCADE")
            await conn.commit()
        await close_pool()
