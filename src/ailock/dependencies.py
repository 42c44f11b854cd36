"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from redis.asyncio import Redis

from ailock.database import get_session as _get_session
from ailock.redis_client import get_redis_or_none

get_db = _get_session


async def get_redis_dep() -> AsyncGenerator[Redis | None, None]:
    """Yield the Redis client (or None) as a FastAPI dependency."""
    yield get_redis_or_none()
