import asyncio
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

import classjournal.core.models  # noqa: F401  registers every table on Base.metadata
from classjournal.core.exceptions import DatabaseUnavailable
from classjournal.db.session import Base, engine

logger = logging.getLogger(__name__)


async def check_connection(db_engine: AsyncEngine) -> None:
    """Fail fast when the database cannot be reached."""
    try:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        raise DatabaseUnavailable(f"database unavailable: {e}") from e


async def create_schema(db_engine: AsyncEngine = engine) -> None:
    """
    Create any missing tables and indexes, including the partial unique
    indexes (one current year, one current absence/late/not_done per lesson).
    Existing tables are left untouched.
    """
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database schema is up to date")


async def main() -> None:
    await check_connection(engine)
    await create_schema(engine)
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
