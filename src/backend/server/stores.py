from __future__ import annotations

from typing import TYPE_CHECKING

from litestar.stores.redis import RedisStore as LitestarRedisStore

if TYPE_CHECKING:
    from typing import Self

    from redis.asyncio import Redis

    from backend.config.app import RedisConfig

__all__ = ("RedisStore",)


class RedisStore(LitestarRedisStore):
    """Redis based asynchronous key/value store used as the read cache.

    Extends :class:`litestar.stores.redis.RedisStore` with the probe and
    close operations the service needs to supervise the connection.
    """

    _redis: Redis[bytes]

    @classmethod
    async def connect(cls, config: RedisConfig, *, namespace: str) -> Self:
        """Create a client and verify it with ``PING``.

        Parameters
        ----------
        config : RedisConfig
            The Redis configuration.
        namespace : str
            Prefix applied to every key written through the store.

        Returns
        -------
        RedisStore
            A store whose client answered the probe.
        """
        redis = config.create_client()
        store = cls(redis, namespace=namespace, handle_client_shutdown=False)

        try:
            await store.probe()
        except BaseException:
            await redis.aclose()
            raise

        return store

    async def probe(self) -> None:
        """Round trip to the server."""
        await self._redis.ping()  # pyright: ignore[reportUnknownMemberType]

    async def close(self) -> None:
        """Close the client and its connection pool."""
        await self._redis.aclose()
