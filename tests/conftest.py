"""Shared test fixtures."""

from __future__ import annotations

import json
import os
from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Fast retries and no real Redis for the whole suite.
os.environ.setdefault("AILOCK_DB_RETRY_BACKOFF_MS", "0")
os.environ.setdefault("AILOCK_REDIS_URL", "")

from ailock.config import get_settings  # noqa: E402
from ailock.database import close_db, get_engine, get_session, init_db  # noqa: E402
from ailock.db import models  # noqa: E402, F401
from ailock.db.base import Base  # noqa: E402
from ailock.main import create_app  # noqa: E402
from ailock.progression.engine import ProgressionEngine  # noqa: E402
from ailock.progression.repository import AilockRepository  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeRedis:
    """Records pub/sub messages instead of sending them."""

    def __init__(self) -> None:
        self.published: list[tuple[str, dict]] = []

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, json.loads(message)))
        return 1

    async def ping(self) -> bool:
        return True

    def channels(self) -> list[str]:
        return [channel for channel, _ in self.published]


class BrokenRedis:
    """Every call fails, like a Redis that went away mid-request."""

    async def publish(self, channel: str, message: str) -> int:
        msg = "connection refused"
        raise ConnectionError(msg)


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh in-memory database per test with every table created."""
    get_settings.cache_clear()
    await init_db(TEST_DATABASE_URL)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


@pytest_asyncio.fixture
async def repo(db_session: AsyncSession) -> AilockRepository:
    return AilockRepository(db_session)


@pytest_asyncio.fixture
async def progression(repo: AilockRepository) -> ProgressionEngine:
    """Engine without Redis, as when pub/sub is not configured."""
    return ProgressionEngine(repo)


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the in-memory database."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def broken_redis() -> BrokenRedis:
    return BrokenRedis()
