"""Shared fixtures and in-memory stand-ins for the database and Redis."""

from __future__ import annotations

import time
from typing import Any

import pytest

from backend.config.app import Config
from backend.server.context import (
    ConnectionState,
    DependencyHandle,
    ServiceContext,
    ServiceState,
)


class FakeDatabase:
    """Store of record double counting queries."""

    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows if rows is not None else [
            {"id": 1, "name": "Ada"},
            {"id": 2, "name": "Grace"},
        ]
        self.queries: list[str] = []
        self.fetch_error: Exception | None = None
        self.probe_error: Exception | None = None
        self.close_error: Exception | None = None
        self.closed = False

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        self.queries.append(query)
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.rows)

    async def probe(self) -> None:
        if self.probe_error is not None:
            raise self.probe_error

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeCache:
    """Redis store double with expiry driven by an adjustable clock."""

    def __init__(self) -> None:
        self.data: dict[str, tuple[bytes, float]] = {}
        self.now = time.monotonic()
        self.get_error: Exception | None = None
        self.set_error: Exception | None = None
        self.probe_error: Exception | None = None
        self.close_error: Exception | None = None
        self.gets = 0
        self.sets = 0
        self.closed = False

    async def get(self, key: str) -> bytes | None:
        self.gets += 1
        if self.get_error is not None:
            raise self.get_error
        entry = self.data.get(key)
        if entry is None or entry[1] <= self.now:
            return None
        return entry[0]

    async def set(self, key: str, value: bytes, expires_in: int | None = None) -> None:
        self.sets += 1
        if self.set_error is not None:
            raise self.set_error
        self.data[key] = (value, self.now + (expires_in or 10**9))

    async def probe(self) -> None:
        if self.probe_error is not None:
            raise self.probe_error

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


def connected(handle: DependencyHandle, client: Any) -> DependencyHandle:
    handle.client = client
    handle.state = ConnectionState.CONNECTED
    handle.attempt = 1
    return handle


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def context(database: FakeDatabase, cache: FakeCache) -> ServiceContext:
    """A serving context with both dependencies connected."""
    context = ServiceContext(
        store=connected(DependencyHandle.for_store(), database),
        cache=connected(DependencyHandle.for_cache(), cache),
    )
    context.transition(ServiceState.SERVING)
    return context


@pytest.fixture
def degraded_context(database: FakeDatabase) -> ServiceContext:
    """A serving context running without a cache."""
    context = ServiceContext(store=connected(DependencyHandle.for_store(), database))
    context.transition(ServiceState.SERVING)
    return context
