"""Helpers for retrying transient database failures (deadlock / lock wait)."""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db_errors import MYSQL_NOWAIT_CONFLICT, extract_error_code

T = TypeVar("T")
MYSQL_RETRIABLE_ERROR_CODES = {1205, 1213, MYSQL_NOWAIT_CONFLICT}
RETRIABLE_SQLSTATES = {"40001", "40P01"}


def is_retriable(exc: DBAPIError) -> bool:
    code, sqlstate = extract_error_code(exc)
    if code == MYSQL_NOWAIT_CONFLICT and settings.DB_NOWAIT_LOCKS:
        return False  # NOWAIT conflicts surface as 409 instead
    if code in MYSQL_RETRIABLE_ERROR_CODES:
        return True
    if sqlstate in RETRIABLE_SQLSTATES:
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return (
        "deadlock" in message
        or "lock wait timeout" in message
        or "database is locked" in message
    )


async def with_db_retry(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    jitter: float | None = None,
) -> T:
    """Run the async operation with deadlock/timeout retries and jitter."""

    attempts = attempts or settings.DB_RETRY_ATTEMPTS
    base_delay = base_delay or settings.DB_RETRY_BASE_DELAY
    jitter = jitter if jitter is not None else settings.DB_RETRY_JITTER
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except DBAPIError as exc:
            if not is_retriable(exc):
                raise
            last_error = exc
            await session.rollback()
            if attempt == attempts:
                break
            sleep_for = base_delay * (2 ** (attempt - 1)) + random.uniform(0, jitter)
            logger.bind(
                attempt=attempt,
                max_attempts=attempts,
                sleep=sleep_for,
                error=str(exc),
            ).warning("db_retry_deadlock")
            await asyncio.sleep(sleep_for)
    if last_error is not None:
        raise last_error
    raise RuntimeError("Operation failed without raising an exception")
