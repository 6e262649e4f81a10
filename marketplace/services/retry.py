from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings

log = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff_seconds(attempt: int, base: float = 1.0, cap: float = 30.0, jitter: bool = False) -> float:
    # exponential backoff: base, 2*base, 4*base ... (optionally with jitter)
    exp = min(cap, base * (2 ** max(0, attempt - 1)))
    if jitter:
        exp += random.uniform(0, exp / 3)
    return exp


def is_transient_db_error(exc: BaseException) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError))


async def with_db_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    timeout: float | None = None,
    on_retry: Callable[[], Awaitable[Any]] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run a database operation, retrying transient failures (cold connections,
    timeouts) with exponential backoff. Non-transient errors propagate at once;
    the last transient error propagates after the final attempt.
    """
    max_attempts = attempts if attempts is not None else settings.db_retry_attempts
    delay_base = base_delay if base_delay is not None else settings.db_retry_base_delay_seconds
    op_timeout = timeout if timeout is not None else settings.db_command_timeout_seconds

    attempt = 0
    while True:
        attempt += 1
        try:
            return await asyncio.wait_for(operation(), timeout=op_timeout)
        except Exception as e:
            if not is_transient_db_error(e) or attempt >= max_attempts:
                raise
            log.warning("db operation failed (attempt %s/%s): %s", attempt, max_attempts, e)
            if on_retry is not None:
                await on_retry()
            await sleep(compute_backoff_seconds(attempt, base=delay_base))


async def execute_with_retry(db: AsyncSession, stmt: Any):
    # A failed statement poisons the session transaction; roll back before retrying.
    return await with_db_retry(lambda: db.execute(stmt), on_retry=db.rollback)
