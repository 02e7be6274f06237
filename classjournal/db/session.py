import asyncio
import functools
import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from classjournal.core.config import settings
from classjournal.core.exceptions import DeadlineExceeded

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    # asyncpg aborts the in-flight statement server-side once the deadline passes.
    if url.startswith("postgresql+asyncpg"):
        return {"command_timeout": settings.database.timeout}
    return {}


# pool_pre_ping: check connection is alive before use (avoids "connection is closed" errors
# when DB or network closed idle connections).
# pool_recycle: discard connections after this many seconds to avoid stale connections.
engine = create_async_engine(
    settings.database.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=300,
    pool_size=settings.database.pool_size,
    connect_args=_connect_args(settings.database.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def with_deadline(seconds: Optional[float] = None):
    """Bound a service coroutine by the database deadline.

    On expiry the coroutine is cancelled, which rolls back the session and
    returns its connection to the pool, and DeadlineExceeded is raised.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            timeout = seconds if seconds is not None else settings.database.timeout
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout)
            except asyncio.TimeoutError as e:
                logger.error("%s exceeded deadline of %.1fs", func.__qualname__, timeout)
                raise DeadlineExceeded() from e

        return wrapper

    return decorator
