"""Engine and session plumbing for the user store.

PostgreSQL through asyncpg in deployments, SQLite through aiosqlite for
local runs and the test suite. The URL comes from ``settings.database_url``.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from typing_extensions import Annotated

from userapi.app.core.config import settings
from userapi.app.core.logging import get_logger

logger = get_logger(__name__)

# Built lazily by get_async_session_maker, reset by close_async_engine
_AsyncSessionLocal = None


@lru_cache(maxsize=1)
def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """Return the process-wide engine for the user store.

    Args:
        database_url: Override for settings.database_url

    Returns:
        AsyncEngine, pooled for PostgreSQL and unpooled for SQLite
    """
    url = database_url or settings.database_url

    if "sqlite" in url.lower():
        engine = create_async_engine(url, echo=settings.database_logging)
        logger.info("Created SQLite async engine")
    else:
        engine = create_async_engine(
            url,
            echo=settings.database_logging,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
            pool_pre_ping=True,
        )
        logger.info(
            f"Created PostgreSQL async engine (pool_size={settings.database_pool_size}, "
            f"max_overflow={settings.database_max_overflow})"
        )
    return engine


def get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the user store engine.

    Returns:
        Session maker whose sessions keep attributes loaded after commit
    """
    global _AsyncSessionLocal
    if _AsyncSessionLocal is None:
        _AsyncSessionLocal = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _AsyncSessionLocal


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Open a user store session; get_db wraps this for requests.

    Usage:
        async with get_async_session() as session:
            result = await session.execute(...)
    """
    session_maker = get_async_session_maker()
    async with session_maker() as session:
        yield session


async def close_async_engine() -> None:
    """Dispose of the engine and forget the session factory.

    Runs from the app lifespan on shutdown; the next call to get_async_engine
    builds a fresh engine, which the test suite relies on.
    """
    global _AsyncSessionLocal

    engine = get_async_engine()
    try:
        await engine.dispose()
        logger.debug("User store engine disposed")
    except RuntimeError:
        # Pool was created on a loop that has since closed
        logger.debug("Skipped engine dispose, its event loop is closed")

    # Next get_async_engine call builds a new engine
    get_async_engine.cache_clear()
    _AsyncSessionLocal = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for the users and health routes.

    The request's writes are committed once the handler returns. An
    exception rolls them back and propagates to the exception handlers.

    Yields:
        AsyncSession shared by every dependency of the request
    """
    async with get_async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Route signature shorthand: ``session: SessionDep``
SessionDep = Annotated[AsyncSession, Depends(get_db)]
