from __future__ import annotations

from typing import TYPE_CHECKING

from litestar.datastructures import State  # noqa: TC002

from backend.domain.collections.services import CacheAsideReader
from backend.domain.system.services import HealthReporter
from backend.server.context import ServiceContext  # noqa: TC001

if TYPE_CHECKING:
    from backend.config.app import Config

__all__ = (
    "CONFIG_STATE_KEY",
    "CONTEXT_STATE_KEY",
    "provide_collection_reader",
    "provide_health_reporter",
    "provide_service_context",
)

CONTEXT_STATE_KEY = "service_context"
CONFIG_STATE_KEY = "service_config"


def provide_service_context(state: State) -> ServiceContext:
    """Provide the service context stored on the application state.

    Parameters
    ----------
    state : State
        The application state.

    Returns
    -------
    ServiceContext
        The context built at startup.
    """
    return state[CONTEXT_STATE_KEY]


def provide_health_reporter(state: State, service_context: ServiceContext) -> HealthReporter:
    config: Config = state[CONFIG_STATE_KEY]
    return HealthReporter(
        service_context, config.name, probe_timeout=config.health.probe_timeout
    )


def provide_collection_reader(
    state: State, service_context: ServiceContext
) -> CacheAsideReader:
    config: Config = state[CONFIG_STATE_KEY]
    return CacheAsideReader(service_context, config.collections, ttl=config.cache.ttl)
