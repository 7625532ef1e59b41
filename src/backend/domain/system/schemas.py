from __future__ import annotations

import datetime
from typing import Literal

from msgspec import field

from backend.lib.schemas import Struct

__all__ = ("DependencyCheck", "DetailedHealth", "Liveness", "Readiness")

type CheckStatus = Literal["Connected", "Not Initialized", "Not Available", "Error"]


class DependencyCheck(Struct):
    """Observed status of one dependency."""

    status: CheckStatus
    response_time_ms: float | None = field(default=None)
    error: str | None = field(default=None)

    @property
    def ok(self) -> bool:
        return self.status == "Connected"


class Liveness(Struct):
    """Liveness probe response."""

    status: Literal["OK"]
    service: str
    state: str
    timestamp: datetime.datetime


class Readiness(Struct, gc=True):
    """Readiness probe response."""

    status: Literal["READY", "NOT_READY"]
    timestamp: datetime.datetime
    checks: dict[str, DependencyCheck]

    @property
    def ready(self) -> bool:
        return self.status == "READY"

    def failing(self) -> dict[str, str]:
        """Map each dependency that is not connected to its status or error."""
        return {
            name: check.error or check.status
            for name, check in self.checks.items()
            if not check.ok
        }


class DetailedHealth(Struct, gc=True):
    """Operator facing health report."""

    status: Literal["OK", "Error"]
    state: str
    timestamp: datetime.datetime
    checks: dict[str, DependencyCheck]
