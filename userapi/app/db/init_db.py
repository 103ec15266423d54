"""Database initialization and connectivity utilities."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine

from userapi.app.core.config import settings
from userapi.app.core.logging import get_logger
from userapi.app.db.async_session import get_async_engine
from userapi.app.db.base import Base

logger = get_logger(__name__)


async def drop_all_tables(engine: AsyncEngine | None = None) -> None:
    """Drop all database tables.

    WARNING: This will delete all data. Use only in development.
    """
    if engine is None:
        engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def create_all_tables(engine: AsyncEngine | None = None) -> None:
    """Create all database tables."""
    if engine is None:
        engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database(drop_first: bool = False) -> None:
    """Initialize database with all tables.

    Args:
        drop_first: If True, drop existing tables before creating.
    """
    if drop_first:
        await drop_all_tables()
    await create_all_tables()


async def check_connection() -> bool:
    """Check the database answers a trivial query.

    Returns:
        True if connection successful, False otherwise.
    """
    try:
        engine = get_async_engine()
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


def get_database_info() -> dict[str, Any]:
    """Describe the configured database without exposing credentials."""
    url = make_url(settings.database_url)
    return {
        "host": url.host,
        "port": url.port,
        "database": url.database,
        "user": url.username,
    }
