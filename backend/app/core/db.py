from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from functools import lru_cache
from typing import TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import get_settings
from app.core.errors import TransactionConflict


logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    return create_async_engine(settings.database_url, pool_pre_ping=True)


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=get_engine(), expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


def is_retryable_conflict(exc: BaseException) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _RETRYABLE_SQLSTATES:
        return True
    # SQLite reports writer contention as an OperationalError without a SQLSTATE.
    return "database is locked" in str(orig).lower()


async def run_in_transaction(
    session: AsyncSession,
    fn: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: int | None = None,
) -> T:
    """
    Run `fn` inside one transaction on `session`, retrying the whole unit on
    optimistic-lock and serialization conflicts.

    Domain errors raised by `fn` roll the transaction back and propagate
    unchanged. After `attempts` conflicting tries `TransactionConflict` is raised.
    """
    max_attempts = attempts if attempts is not None else get_settings().transaction_retry_attempts
    last_exc: BaseException | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            async with session.begin():
                return await fn(session)
        except (StaleDataError, DBAPIError) as e:
            if not is_retryable_conflict(e):
                raise
            last_exc = e
            logger.warning(
                "Transaction conflict, retrying",
                extra={"attempt": attempt, "max_attempts": max_attempts, "error": e.__class__.__name__},
            )
    raise TransactionConflict(max_attempts) from last_exc
