"""Retry wrapper for database-bound service calls."""

import asyncio
from collections.abc import Awaitable, Callable
import functools
from typing import Any, ParamSpec, TypeVar

from app.log import log
from app.models.error import ErrorType, RequestError

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

logger = log("Store")

TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, TimeoutError)
RETRY_ATTEMPTS = 1
RETRY_BACKOFF_SECONDS = 0.2

P = ParamSpec("P")
T = TypeVar("T")


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    for value in (*args, *kwargs.values()):
        if isinstance(value, AsyncSession):
            return value
    return None


def _bound_instances(session: AsyncSession, args: tuple[Any, ...], kwargs: dict[str, Any]) -> list[SQLModel]:
    return [value for value in (*args, *kwargs.values()) if isinstance(value, SQLModel) and value in session]


def transient_retry(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
    """Retry a store-bound coroutine once on a transient database failure.

    The session passed to the call, if any, is rolled back before the retry
    and the rows passed alongside it are reloaded, since the rollback expires
    them. When the retry fails too, a ``TRANSIENT_STORE_ERROR`` request error
    is raised so the caller gets a 503 without internal detail.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except TRANSIENT_ERRORS as e:
                session = _find_session(args, kwargs)
                if attempt >= RETRY_ATTEMPTS:
                    if session is not None:
                        try:
                            await session.rollback()
                        except TRANSIENT_ERRORS:
                            logger.warning("Rollback failed after transient store error")
                    logger.error(f"{func.__qualname__} failed after {attempt + 1} attempts: {e!r}")
                    raise RequestError(ErrorType.TRANSIENT_STORE_ERROR) from e

                attempt += 1
                logger.warning(f"Transient store error in {func.__qualname__}, retrying: {e!r}")
                await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
                if session is not None:
                    try:
                        await session.rollback()
                        for instance in _bound_instances(session, args, kwargs):
                            await session.refresh(instance)
                    except TRANSIENT_ERRORS as reset_error:
                        logger.error(f"Could not reset session for {func.__qualname__}: {reset_error!r}")
                        raise RequestError(ErrorType.TRANSIENT_STORE_ERROR) from reset_error

    return wrapper
