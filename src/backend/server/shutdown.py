from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from .context import ConnectionState, ServiceState

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Final

    from .context import DependencyHandle, ServiceContext

__all__ = ("ShutdownCoordinator",)


LOGGER: Final = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Drain the service and release its dependencies.

    The cache is released before the store: requests still in flight may need
    the store but never the cache. Release failures are logged and do not
    change the exit code.

    Parameters
    ----------
    context : ServiceContext
        The service context to drain.
    release_timeout : float, optional
        Seconds to wait for each release (the default is 10).
    stop_listener : Callable[[], object], optional
        Called once when draining starts to stop accepting connections.
    """

    __slots__ = ("_context", "_release_timeout", "_stop_listener")

    _context: ServiceContext
    _release_timeout: float
    _stop_listener: Callable[[], object] | None

    def __init__(
        self,
        context: ServiceContext,
        *,
        release_timeout: float = 10.0,
        stop_listener: Callable[[], object] | None = None,
    ) -> None:
        self._context = context
        self._release_timeout = release_timeout
        self._stop_listener = stop_listener

    def begin_drain(self) -> None:
        """Stop admitting new work. Calling it again is a no-op."""
        if self._context.state is not ServiceState.SERVING:
            return

        LOGGER.info("Received termination signal, starting graceful shutdown...")
        self._context.transition(ServiceState.DRAINING)

        if self._stop_listener is not None:
            self._stop_listener()

    async def release_all(self) -> int:
        """Release the cache then the store and stop the service.

        Returns
        -------
        int
            The process exit code, always 0.
        """
        self.begin_drain()

        await self.release(self._context.cache)
        await self.release(self._context.store)

        if self._context.state is ServiceState.DRAINING:
            self._context.transition(ServiceState.STOPPED)

        LOGGER.info("Shutdown complete")
        return 0

    async def release(self, handle: DependencyHandle | None) -> bool:
        """Close one dependency if it is connected.

        Parameters
        ----------
        handle : DependencyHandle or None
            The dependency to release.

        Returns
        -------
        bool
            Whether the dependency was closed cleanly.
        """
        if handle is None or not handle.is_connected:
            return True

        try:
            async with asyncio.timeout(self._release_timeout):
                await handle.client.close()
        except Exception as exc:  # noqa: BLE001
            handle.last_error = str(exc) or type(exc).__name__
            LOGGER.error("Failed to close %s connection: %s", handle.name, handle.last_error)  # noqa: TRY400
            released = False
        else:
            LOGGER.info("%s connection closed", handle.name)
            released = True

        handle.state = ConnectionState.DISCONNECTED
        handle.client = None
        return released
