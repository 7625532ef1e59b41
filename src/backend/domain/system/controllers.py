from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from litestar import Controller, Response, get
from litestar.di import Provide
from litestar.status_codes import HTTP_200_OK, HTTP_503_SERVICE_UNAVAILABLE

from backend.lib.dependencies import provide_health_reporter

from .schemas import DetailedHealth, Liveness, Readiness
from .services import HealthReporter  # noqa: TC001

if TYPE_CHECKING:
    from typing import Final

__all__ = ("ProbeController", "SystemController")


LOGGER: Final = logging.getLogger(__name__)

HEALTH_DEPENDENCIES: Final = {
    "health_reporter": Provide(provide_health_reporter, sync_to_thread=False)
}


class ProbeController(Controller):
    """Orchestrator probes."""

    tags = ["Probes"]
    path = "/"
    dependencies = HEALTH_DEPENDENCIES

    @get(path="/health")
    async def check_liveness(self, health_reporter: HealthReporter) -> Liveness:
        """Liveness probe, independent of dependency health."""
        return health_reporter.liveness()

    @get(path="/ready")
    async def check_readiness(self, health_reporter: HealthReporter) -> Response[Readiness]:
        """Readiness probe, 503 unless the database answers."""
        readiness = await health_reporter.readiness()

        if readiness.ready:
            status_code = HTTP_200_OK
        else:
            status_code = HTTP_503_SERVICE_UNAVAILABLE
            LOGGER.warning("Readiness check failed: %s", readiness.failing())

        return Response(content=readiness, status_code=status_code)


class SystemController(Controller):
    """System controller."""

    tags = ["System"]
    path = "/"
    dependencies = HEALTH_DEPENDENCIES

    @get(path="/health")
    async def check_health(self, health_reporter: HealthReporter) -> DetailedHealth:
        """Detailed health, always 200 with the verdict in the body."""
        return await health_reporter.detailed()
