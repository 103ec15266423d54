"""Shared fixtures: a throwaway SQLite database and a fully assembled app."""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from userapi.app.core.config import settings
from userapi.app.db.async_session import get_async_engine
from userapi.app.db.base import Base


def sqlite_url(path) -> str:
    # SQLAlchemy expects 4 slashes for absolute paths.
    return f"sqlite+aiosqlite:////{str(path).lstrip('/')}"


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    url = sqlite_url(tmp_path / "userapi_test.db")
    monkeypatch.setattr(settings, "database_url_override", url)
    get_async_engine.cache_clear()
    yield url
    get_async_engine.cache_clear()


@pytest.fixture
def make_client(db_url, monkeypatch):
    """Build a TestClient around create_app() with settings overrides.

    Usage:
        client = make_client(throttle_limit=5)
    """
    clients = []

    def _make(**overrides) -> TestClient:
        overrides.setdefault("throttle_limit", 1000)
        for name, value in overrides.items():
            monkeypatch.setattr(settings, name, value)

        from userapi.app.main import create_app

        client = TestClient(create_app(), raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest_asyncio.fixture
async def session(tmp_path):
    engine = create_async_engine(sqlite_url(tmp_path / "userapi_session.db"))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with session_maker() as db_session:
        yield db_session

    await engine.dispose()
