from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import asyncpg
import msgspec

from backend.lib.exceptions import InternalServerError, ServiceUnavailableError
from backend.lib.metrics import DATABASE_QUERY_DURATION
from backend.utils.time import elapsed_ms

from .exceptions import CollectionNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Final

    from backend.server.context import DependencyHandle, ServiceContext

__all__ = ("CacheAdapter", "CacheAsideReader", "CollectionResult")


LOGGER: Final = logging.getLogger(__name__)

STORE_ERRORS: Final = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError)


class CollectionResult(msgspec.Struct, frozen=True):
    """Rows of a collection and where they were read from."""

    rows: list[dict[str, Any]]
    source: str


class CacheAdapter:
    """The one place where cache failures are absorbed.

    Every call turns an unavailable cache or a failing operation into a miss
    (reads) or a no-op (writes); nothing raised by the cache reaches callers.
    """

    __slots__ = ("_handle",)

    _handle: DependencyHandle | None

    def __init__(self, handle: DependencyHandle | None) -> None:
        self._handle = handle

    @property
    def available(self) -> bool:
        return self._handle is not None and self._handle.is_connected

    async def get(self, key: str) -> bytes | None:
        """Read ``key``, returning ``None`` on a miss or any cache failure."""
        if not self.available:
            return None

        try:
            return await self._handle.client.get(key)  # pyright: ignore[reportOptionalMemberAccess]
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Cache read failed for key=%s, falling back to store: %s", key, exc)
            return None

    async def set(self, key: str, value: bytes, *, expires_in: int) -> bool:
        """Write ``key`` with a time to live, returning whether it was stored."""
        if not self.available:
            return False

        try:
            await self._handle.client.set(key, value, expires_in=expires_in)  # pyright: ignore[reportOptionalMemberAccess]
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to cache key=%s: %s", key, exc)
            return False

        return True


class CacheAsideReader:
    """Read collections from the cache, falling back to the store of record.

    Parameters
    ----------
    context : ServiceContext
        Holds the store and cache handles.
    collections : Mapping[str, str]
        Served collection names mapped to the table backing each of them.
    ttl : int, optional
        Seconds a populated cache entry stays valid (the default is 300).
    """

    __slots__ = ("_cache", "_collections", "_context", "_ttl")

    _context: ServiceContext
    _cache: CacheAdapter
    _collections: Mapping[str, str]
    _ttl: int

    def __init__(
        self, context: ServiceContext, collections: Mapping[str, str], *, ttl: int = 300
    ) -> None:
        self._context = context
        self._cache = CacheAdapter(context.cache)
        self._collections = collections
        self._ttl = ttl

    @staticmethod
    def cache_key(collection: str) -> str:
        return f"{collection}:all"

    async def read_collection(self, collection: str) -> CollectionResult:
        """Read every row of ``collection``.

        The steps run strictly in sequence: cache lookup, then on a miss a
        store query, then a best effort cache population.

        Parameters
        ----------
        collection : str
            Name of the collection to read.

        Returns
        -------
        CollectionResult
            The rows and whether they came from ``"cache"`` or ``"store"``.

        Raises
        ------
        CollectionNotFoundError
            If the collection is not served.
        ServiceUnavailableError
            If the store is not connected.
        InternalServerError
            If the store query fails.
        """
        table = self._collections.get(collection)
        if table is None:
            raise CollectionNotFoundError(collection)

        if not self._context.store_connected:
            raise ServiceUnavailableError("Database not available")

        key = self.cache_key(collection)
        started = time.perf_counter()

        cached = await self._cache.get(key)
        if cached is not None:
            try:
                rows = msgspec.json.decode(cached, type=list[dict[str, Any]])
            except msgspec.DecodeError:
                LOGGER.warning("Discarding undecodable cache entry key=%s", key)
            else:
                DATABASE_QUERY_DURATION.labels(operation="cache_hit", table=table).observe(
                    elapsed_ms(started)
                )
                LOGGER.debug("Serving collection=%s from cache", collection)
                return CollectionResult(rows=rows, source="cache")

        try:
            records = await self._context.store.client.fetch(  # pyright: ignore[reportOptionalMemberAccess]
                f'SELECT * FROM "{table}" ORDER BY id'  # noqa: S608
            )
        except STORE_ERRORS:
            LOGGER.exception("Error fetching collection=%s from store", collection)
            raise InternalServerError from None

        DATABASE_QUERY_DURATION.labels(operation="select", table=table).observe(
            elapsed_ms(started)
        )
        rows = [dict(record) for record in records]

        try:
            payload = msgspec.json.encode(rows)
        except (TypeError, msgspec.EncodeError) as exc:
            LOGGER.warning(
                "Not caching collection=%s, rows are not serializable: %s", collection, exc
            )
        else:
            await self._cache.set(key, payload, expires_in=self._ttl)

        LOGGER.debug("Serving collection=%s from store", collection)
        return CollectionResult(rows=rows, source="store")
