from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING

from backend.lib.db import Database
from backend.lib.exceptions import FatalDependencyError, RetriesExhaustedError
from backend.lib.metrics import CACHE_CONNECTION_RETRIES, DATABASE_CONNECTION_RETRIES

from .context import DependencyHandle
from .retry import connect_with_retry
from .stores import RedisStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from typing import Any, Final

    from backend.config.app import DatabaseConfig, RedisConfig

    from .retry import Sleep

__all__ = ("acquire_optional", "acquire_required")


LOGGER: Final = logging.getLogger(__name__)


async def acquire_required(
    config: DatabaseConfig,
    *,
    connect: Callable[[], Awaitable[Any]] | None = None,
    sleep: Sleep = asyncio.sleep,
) -> DependencyHandle:
    """Acquire the store of record, retrying up to the configured budget.

    Parameters
    ----------
    config : DatabaseConfig
        The database configuration, including its retry policy.
    connect : Callable[[], Awaitable[Any]], optional
        Factory for a verified client (the default creates an asyncpg pool).
    sleep : Callable[[float], Awaitable[object]], optional
        Used to wait between attempts (the default is :func:`asyncio.sleep`).

    Returns
    -------
    DependencyHandle
        A connected handle.

    Raises
    ------
    FatalDependencyError
        If every attempt failed. The caller must terminate the process.
    """
    handle = DependencyHandle.for_store()
    connect = connect or functools.partial(Database.connect, config)

    try:
        await connect_with_retry(
            handle,
            config.retry,
            connect,
            sleep=sleep,
            on_failure=DATABASE_CONNECTION_RETRIES.inc,
        )
    except RetriesExhaustedError as exc:
        raise FatalDependencyError(exc.name, exc.attempts, exc.last_error) from exc.last_error

    return handle


async def acquire_optional(
    config: RedisConfig,
    *,
    namespace: str = "backend:cache",
    connect: Callable[[], Awaitable[Any]] | None = None,
    sleep: Sleep = asyncio.sleep,
) -> DependencyHandle | None:
    """Acquire the cache, degrading to no cache when it is unreachable.

    Parameters
    ----------
    config : RedisConfig
        The Redis configuration, including its retry policy.
    namespace : str, optional
        Key prefix of the cache store (the default is ``"backend:cache"``).
    connect : Callable[[], Awaitable[Any]], optional
        Factory for a verified client (the default creates a :class:`RedisStore`).
    sleep : Callable[[float], Awaitable[object]], optional
        Used to wait between attempts (the default is :func:`asyncio.sleep`).

    Returns
    -------
    DependencyHandle or None
        A connected handle, or ``None`` when the service has to run without a cache.
    """
    handle = DependencyHandle.for_cache()
    connect = connect or functools.partial(RedisStore.connect, config, namespace=namespace)

    try:
        await connect_with_retry(
            handle,
            config.retry,
            connect,
            sleep=sleep,
            on_failure=CACHE_CONNECTION_RETRIES.inc,
        )
    except RetriesExhaustedError:
        LOGGER.warning(
            "Continuing without %s cache after %d attempts, it is optional",
            handle.name,
            handle.attempt,
        )
        return None

    return handle
