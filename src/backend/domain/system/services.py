from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from backend.server.context import CACHE_NAME, STORE_NAME
from backend.utils.time import elapsed_ms, utcnow

from .schemas import DependencyCheck, DetailedHealth, Liveness, Readiness

if TYPE_CHECKING:
    from typing import Final

    from backend.server.context import DependencyHandle, ServiceContext

__all__ = ("HealthReporter",)


LOGGER: Final = logging.getLogger(__name__)


class HealthReporter:
    """Build liveness, readiness and detailed health reports.

    Reports are computed fresh on every call. Only the store decides the
    verdict; the cache is probed and reported for visibility.

    Parameters
    ----------
    context : ServiceContext
        Holds the service state and the dependency handles.
    service : str
        Name reported by the liveness probe.
    probe_timeout : float, optional
        Seconds a single dependency probe may take (the default is 5).
    """

    __slots__ = ("_context", "_probe_timeout", "_service")

    _context: ServiceContext
    _service: str
    _probe_timeout: float

    def __init__(
        self, context: ServiceContext, service: str, *, probe_timeout: float = 5.0
    ) -> None:
        self._context = context
        self._service = service
        self._probe_timeout = probe_timeout

    def liveness(self) -> Liveness:
        """Report that the process is alive; dependencies are not consulted."""
        return Liveness(
            status="OK",
            service=self._service,
            state=self._context.state,
            timestamp=utcnow(),
        )

    async def readiness(self) -> Readiness:
        """Report whether the service can take traffic."""
        store_ok, checks = await self._check_dependencies()
        return Readiness(
            status="READY" if store_ok else "NOT_READY",
            timestamp=utcnow(),
            checks=checks,
        )

    async def detailed(self) -> DetailedHealth:
        """Report per dependency health for operators."""
        store_ok, checks = await self._check_dependencies()
        return DetailedHealth(
            status="OK" if store_ok else "Error",
            state=self._context.state,
            timestamp=utcnow(),
            checks=checks,
        )

    async def _check_dependencies(self) -> tuple[bool, dict[str, DependencyCheck]]:
        # Probes run one after the other, the store first.
        store, cache = self._context.store, self._context.cache
        store_check = await self.probe(store, missing="Not Initialized")
        cache_check = await self.probe(cache, missing="Not Available")

        checks = {
            store.name if store is not None else STORE_NAME: store_check,
            cache.name if cache is not None else CACHE_NAME: cache_check,
        }
        return store_check.ok, checks

    async def probe(
        self, handle: DependencyHandle | None, *, missing: str = "Not Available"
    ) -> DependencyCheck:
        """Probe one dependency and time the round trip.

        Parameters
        ----------
        handle : DependencyHandle or None
            The dependency to probe.
        missing : str, optional
            Status reported when the dependency is not connected.

        Returns
        -------
        DependencyCheck
            ``Connected`` with the latency, the ``missing`` status, or ``Error``
            with the failure text. Probe failures never propagate.
        """
        if handle is None or not handle.is_connected:
            return DependencyCheck(status=missing)  # pyright: ignore[reportArgumentType]

        started = time.perf_counter()
        try:
            async with asyncio.timeout(self._probe_timeout):
                await handle.client.probe()
        except TimeoutError:
            return DependencyCheck(
                status="Error",
                error=f"Probe timed out after {self._probe_timeout}s",
            )
        except Exception as exc:  # noqa: BLE001
            return DependencyCheck(status="Error", error=str(exc) or type(exc).__name__)

        return DependencyCheck(status="Connected", response_time_ms=elapsed_ms(started))
