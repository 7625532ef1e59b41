from __future__ import annotations

from typing import TYPE_CHECKING

import asyncpg

if TYPE_CHECKING:
    from typing import Any, Self

    from asyncpg import Record
    from asyncpg.pool import Pool

    from backend.config.app import DatabaseConfig


__all__ = ("Database",)


class Database:
    """Connection pool wrapper for the store of record.

    Parameters
    ----------
    pool : asyncpg.pool.Pool
        An initialised pool that already answered a probe.
    """

    __slots__ = ("_pool",)

    _pool: Pool[Record]

    def __init__(self, pool: Pool[Record]) -> None:
        self._pool = pool

    @classmethod
    async def connect(cls, config: DatabaseConfig) -> Self:
        """Create a pool and verify it with a round trip.

        A pool that fails the probe is terminated before the error propagates,
        so a failed attempt never leaks connections.

        Parameters
        ----------
        config : DatabaseConfig
            The database configuration.

        Returns
        -------
        Database
            A connected database.
        """
        pool: Pool[Record] = await asyncpg.create_pool(
            host=config.host,
            port=config.port,
            database=config.name,
            user=config.user,
            password=config.resolved_password,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            max_inactive_connection_lifetime=config.idle_timeout,
            timeout=config.connect_timeout,
            command_timeout=config.command_timeout,
        )
        database = cls(pool)

        try:
            await database.probe()
        except BaseException:
            pool.terminate()
            raise

        return database

    async def probe(self) -> None:
        """Run a trivial round trip against the store."""
        await self._pool.fetchval("SELECT 1")

    async def fetch(self, query: str, *args: Any) -> list[Record]:
        """Run a query and return all rows."""
        return await self._pool.fetch(query, *args)

    async def close(self) -> None:
        """Gracefully close every connection of the pool."""
        await self._pool.close()
