"""Tests for the cache-aside read path."""

from __future__ import annotations

import msgspec
import pytest

from backend.domain.collections.exceptions import CollectionNotFoundError
from backend.domain.collections.services import CacheAdapter, CacheAsideReader
from backend.lib.exceptions import InternalServerError, ServiceUnavailableError
from backend.server.context import ConnectionState, ServiceContext

from .conftest import FakeCache, FakeDatabase

COLLECTIONS = {"users": "users"}


def make_reader(context: ServiceContext, ttl: int = 300) -> CacheAsideReader:
    return CacheAsideReader(context, COLLECTIONS, ttl=ttl)


@pytest.mark.asyncio
async def test_miss_queries_store_and_populates_cache(
    context: ServiceContext, database: FakeDatabase, cache: FakeCache
) -> None:
    result = await make_reader(context).read_collection("users")

    assert result.source == "store"
    assert result.rows == database.rows
    assert database.queries == ['SELECT * FROM "users" ORDER BY id']
    value, expires_at = cache.data["users:all"]
    assert msgspec.json.decode(value) == database.rows
    assert expires_at == pytest.approx(cache.now + 300)


@pytest.mark.asyncio
async def test_second_read_is_a_cache_hit(
    context: ServiceContext, database: FakeDatabase
) -> None:
    reader = make_reader(context)

    first = await reader.read_collection("users")
    second = await reader.read_collection("users")

    assert len(database.queries) == 1
    assert second.source == "cache"
    assert second.rows == first.rows


@pytest.mark.asyncio
async def test_expired_entry_is_treated_as_absent(
    context: ServiceContext, database: FakeDatabase, cache: FakeCache
) -> None:
    reader = make_reader(context, ttl=300)

    await reader.read_collection("users")
    cache.now += 301
    result = await reader.read_collection("users")

    assert result.source == "store"
    assert len(database.queries) == 2


@pytest.mark.asyncio
async def test_absent_cache_always_reads_store(
    degraded_context: ServiceContext, database: FakeDatabase
) -> None:
    reader = make_reader(degraded_context)

    for _ in range(3):
        result = await reader.read_collection("users")
        assert result.source == "store"
        assert result.rows == database.rows

    assert len(database.queries) == 3


@pytest.mark.asyncio
async def test_failing_cache_never_fails_reads(
    context: ServiceContext, database: FakeDatabase, cache: FakeCache
) -> None:
    cache.get_error = ConnectionResetError("redis went away")
    cache.set_error = ConnectionResetError("redis went away")
    reader = make_reader(context)

    for _ in range(3):
        result = await reader.read_collection("users")
        assert result.rows == database.rows

    assert len(database.queries) == 3
    assert cache.data == {}


@pytest.mark.asyncio
async def test_population_failure_is_invisible(
    context: ServiceContext, database: FakeDatabase, cache: FakeCache
) -> None:
    cache.set_error = TimeoutError()

    result = await make_reader(context).read_collection("users")

    assert result.source == "store"
    assert result.rows == database.rows
    assert cache.sets == 1


@pytest.mark.asyncio
async def test_disconnected_cache_handle_is_not_consulted(
    context: ServiceContext, cache: FakeCache
) -> None:
    assert context.cache is not None
    context.cache.state = ConnectionState.FAILED

    await make_reader(context).read_collection("users")

    assert cache.gets == 0
    assert cache.sets == 0


@pytest.mark.asyncio
async def test_undecodable_entry_falls_back_to_store(
    context: ServiceContext, database: FakeDatabase, cache: FakeCache
) -> None:
    cache.data["users:all"] = (b"not json", cache.now + 300)

    result = await make_reader(context).read_collection("users")

    assert result.source == "store"
    assert len(database.queries) == 1


@pytest.mark.asyncio
async def test_store_failure_raises_internal_error_and_caches_nothing(
    context: ServiceContext, database: FakeDatabase, cache: FakeCache
) -> None:
    database.fetch_error = ConnectionResetError("server closed the connection")

    with pytest.raises(InternalServerError) as exc_info:
        await make_reader(context).read_collection("users")

    assert "server closed" not in (exc_info.value.detail or "")
    assert exc_info.value.status_code == 500
    assert cache.data == {}


@pytest.mark.asyncio
async def test_store_not_connected_is_unavailable(context: ServiceContext) -> None:
    assert context.store is not None
    context.store.state = ConnectionState.DISCONNECTED

    with pytest.raises(ServiceUnavailableError) as exc_info:
        await make_reader(context).read_collection("users")

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_unknown_collection(context: ServiceContext, database: FakeDatabase) -> None:
    with pytest.raises(CollectionNotFoundError):
        await make_reader(context).read_collection("secrets")

    assert database.queries == []


@pytest.mark.asyncio
async def test_adapter_without_handle_is_a_no_op() -> None:
    adapter = CacheAdapter(None)

    assert not adapter.available
    assert await adapter.get("users:all") is None
    assert await adapter.set("users:all", b"[]", expires_in=1) is False
