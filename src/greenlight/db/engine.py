"""Async SQLAlchemy engine, session factory and store deadlines.

One engine per process with a bounded connection pool, one AsyncSession per
request via the get_db dependency. SQLite (local development and tests) runs
through aiosqlite with NullPool, PostgreSQL through asyncpg with a real pool.

Every store call made by the services goes through bounded(), so a slow
database turns into a StoreTimeoutError instead of a request that hangs
while holding a pooled connection.
"""

import asyncio
from typing import AsyncGenerator, Awaitable, Optional, TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from greenlight.config import settings
from greenlight.errors import StoreTimeoutError

T = TypeVar("T")


def _create_engine() -> AsyncEngine:
    if settings.is_sqlite:
        return create_async_engine(
            settings.database_url,
            echo=settings.debug,
            poolclass=NullPool,
        )

    # max_open_conns is the hard ceiling; idle conns are what the pool keeps.
    pool_size = min(settings.db_max_idle_conns, settings.db_max_open_conns)
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=pool_size,
        max_overflow=max(settings.db_max_open_conns - pool_size, 0),
        pool_pre_ping=True,
        pool_recycle=settings.db_max_idle_time_seconds,
        pool_timeout=settings.db_timeout_seconds,
    )


engine = _create_engine()

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def bounded(awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
    """Await a store operation under the configured deadline."""
    limit = settings.db_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=limit)
    except asyncio.TimeoutError as e:
        raise StoreTimeoutError(f"store operation exceeded {limit}s deadline") from e
