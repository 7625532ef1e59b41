"""Tests for the health reporter."""

from __future__ import annotations

import asyncio

import pytest

from backend.domain.system.services import HealthReporter
from backend.server.context import ConnectionState, ServiceContext

from .conftest import FakeCache, FakeDatabase


def make_reporter(context: ServiceContext, probe_timeout: float = 5.0) -> HealthReporter:
    return HealthReporter(context, "backend", probe_timeout=probe_timeout)


def test_liveness_ignores_dependencies(context: ServiceContext, database: FakeDatabase) -> None:
    database.probe_error = OSError("down")

    liveness = make_reporter(context).liveness()

    assert liveness.status == "OK"
    assert liveness.service == "backend"
    assert liveness.state == "serving"


@pytest.mark.asyncio
async def test_ready_when_both_dependencies_answer(context: ServiceContext) -> None:
    readiness = await make_reporter(context).readiness()

    assert readiness.ready
    assert readiness.checks["database"].status == "Connected"
    assert readiness.checks["database"].response_time_ms is not None
    assert readiness.checks["redis"].status == "Connected"


@pytest.mark.asyncio
async def test_store_probe_failure_is_not_ready(
    context: ServiceContext, database: FakeDatabase
) -> None:
    database.probe_error = ConnectionRefusedError("connection refused")

    readiness = await make_reporter(context).readiness()

    assert not readiness.ready
    assert readiness.status == "NOT_READY"
    assert readiness.checks["database"].status == "Error"
    assert readiness.checks["database"].error == "connection refused"


@pytest.mark.asyncio
async def test_store_never_established_is_not_ready() -> None:
    readiness = await make_reporter(ServiceContext()).readiness()

    assert not readiness.ready
    assert readiness.checks["database"].status == "Not Initialized"
    assert readiness.checks["redis"].status == "Not Available"


@pytest.mark.asyncio
async def test_cache_state_never_changes_readiness(
    context: ServiceContext, cache: FakeCache
) -> None:
    reporter = make_reporter(context)
    assert context.cache is not None
    handle = context.cache

    verdicts = [(await reporter.readiness()).status]

    handle.state = ConnectionState.FAILED
    verdicts.append((await reporter.readiness()).status)

    handle.state = ConnectionState.CONNECTED
    cache.probe_error = OSError("redis down")
    readiness = await reporter.readiness()
    verdicts.append(readiness.status)

    context.cache = None
    verdicts.append((await reporter.readiness()).status)

    assert verdicts == ["READY"] * 4
    assert readiness.checks["redis"].status == "Error"


@pytest.mark.asyncio
async def test_detailed_health_reports_degraded_cache(
    degraded_context: ServiceContext,
) -> None:
    health = await make_reporter(degraded_context).detailed()

    assert health.status == "OK"
    assert health.checks["redis"].status == "Not Available"
    assert health.checks["database"].status == "Connected"


@pytest.mark.asyncio
async def test_detailed_health_reports_store_error(
    context: ServiceContext, database: FakeDatabase
) -> None:
    database.probe_error = RuntimeError()

    health = await make_reporter(context).detailed()

    assert health.status == "Error"
    assert health.checks["database"].error == "RuntimeError"


@pytest.mark.asyncio
async def test_hung_probe_times_out(context: ServiceContext, database: FakeDatabase) -> None:
    async def hang() -> None:
        await asyncio.sleep(10)

    database.probe = hang  # type: ignore[method-assign]

    readiness = await make_reporter(context, probe_timeout=0.01).readiness()

    assert not readiness.ready
    assert readiness.checks["database"].error == "Probe timed out after 0.01s"
