from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING, Protocol

from granian.constants import Interfaces
from granian.server.embed import Server

from backend.lib.exceptions import FatalDependencyError

from .context import ServiceContext, ServiceState
from .shutdown import ShutdownCoordinator
from .supervisors import acquire_optional, acquire_required

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Final

    from litestar import Litestar

    from backend.config.app import Config

__all__ = ("Listener", "bootstrap", "granian_listener", "serve")


LOGGER: Final = logging.getLogger(__name__)

EXIT_OK: Final = 0
EXIT_FATAL: Final = 1


class Listener(Protocol):
    """HTTP listener serving an application until stopped."""

    async def serve(self) -> None: ...

    def stop(self) -> None: ...


def granian_listener(app: Litestar, config: Config) -> Listener:
    """Create an embedded Granian server bound to the configured address."""
    return Server(
        app,
        address=config.server.host,
        port=config.server.port,
        interface=Interfaces.ASGI,
    )


async def bootstrap(config: Config) -> ServiceContext:
    """Acquire the dependencies in order and enter the serving state.

    Parameters
    ----------
    config : Config
        The service configuration.

    Returns
    -------
    ServiceContext
        A context whose store is connected and whose cache is connected or absent.

    Raises
    ------
    FatalDependencyError
        If the store could not be acquired.
    """
    context = ServiceContext()

    context.store = await acquire_required(config.db)
    context.cache = await acquire_optional(config.redis, namespace=config.cache_namespace)

    context.transition(ServiceState.SERVING)
    LOGGER.info(
        "All connections established (cache %s)",
        "enabled" if context.cache_connected else "disabled",
    )
    return context


async def serve(
    config: Config,
    *,
    app_factory: Callable[[ServiceContext, Config], Litestar] | None = None,
    listener_factory: Callable[[Litestar, Config], Listener] = granian_listener,
) -> int:
    """Bootstrap the dependencies, serve HTTP until signalled, then drain.

    The listener only opens after the store is connected. SIGTERM and SIGINT
    stop it from accepting new connections; once admitted requests finished,
    the dependencies are released.

    Parameters
    ----------
    config : Config
        The service configuration.
    app_factory : Callable[[ServiceContext, Config], Litestar], optional
        Builds the application (the default is :func:`backend.asgi.create_app`).
    listener_factory : Callable[[Litestar, Config], Listener], optional
        Builds the HTTP listener (the default is an embedded Granian server).

    Returns
    -------
    int
        The process exit code.
    """
    if app_factory is None:
        from backend.asgi import create_app  # noqa: PLC0415

        app_factory = create_app

    try:
        context = await bootstrap(config)
    except FatalDependencyError:
        LOGGER.critical("Failed to initialize connections", exc_info=True)
        return EXIT_FATAL

    listener: Listener | None = None

    def stop_listener() -> None:
        if listener is not None:
            listener.stop()

    coordinator = ShutdownCoordinator(
        context,
        release_timeout=config.shutdown.release_timeout,
        stop_listener=stop_listener,
    )

    loop = asyncio.get_running_loop()
    exit_code = EXIT_OK
    try:
        listener = listener_factory(app_factory(context, config), config)

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, coordinator.begin_drain)

        LOGGER.info(
            "Backend server running on http://%s:%d",
            config.server.host,
            config.server.port,
        )
        LOGGER.info("Readiness check at /ready, metrics at /metrics")

        await listener.serve()
    except Exception:
        LOGGER.critical("HTTP listener failed", exc_info=True)
        exit_code = EXIT_FATAL
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

        # Connections are released whatever stopped the listener.
        await coordinator.release_all()

    return exit_code
