"""Bounded retry for transient database failures at the HTTP layer.

Only connection-level errors (OperationalError / InterfaceError) are retried;
constraint violations and programming errors propagate immediately. The
session is rolled back before each new attempt so the operation restarts
from a clean transaction.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

T = TypeVar("T")

RETRIABLE_ERRORS = (OperationalError, InterfaceError)


async def run_with_retry(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    operation_name: str,
    max_attempts: int = 3,
    backoff_ms: int = 50,
) -> T:
    """Run `operation`, retrying transient DB errors with exponential backoff."""
    attempt = 1
    while True:
        try:
            return await operation()
        except RETRIABLE_ERRORS as exc:
            await db.rollback()
            if attempt >= max_attempts:
                logger.error("db_retry_exhausted", operation=operation_name, attempts=attempt, error=str(exc))
                raise
            delay = backoff_ms * 2 ** (attempt - 1) / 1000
            logger.warning(
                "db_transient_error",
                operation=operation_name,
                attempt=attempt,
                retry_in_seconds=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)
            attempt += 1
