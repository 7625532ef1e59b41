from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any

from msgspec import Struct, field

from backend.lib.exceptions import InvalidStateTransitionError

if TYPE_CHECKING:
    from typing import Final

__all__ = (
    "CACHE_NAME",
    "STORE_NAME",
    "ConnectionState",
    "Criticality",
    "DependencyHandle",
    "DependencyKind",
    "ServiceContext",
    "ServiceState",
)


LOGGER: Final = logging.getLogger(__name__)

STORE_NAME: Final = "database"
CACHE_NAME: Final = "redis"


class DependencyKind(enum.StrEnum):
    STORE = "store"
    CACHE = "cache"


class Criticality(enum.StrEnum):
    REQUIRED = "required"
    OPTIONAL = "optional"


class ConnectionState(enum.StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class ServiceState(enum.StrEnum):
    BOOTING = "booting"
    SERVING = "serving"
    DRAINING = "draining"
    STOPPED = "stopped"


_NEXT_STATE: Final = {
    ServiceState.BOOTING: ServiceState.SERVING,
    ServiceState.SERVING: ServiceState.DRAINING,
    ServiceState.DRAINING: ServiceState.STOPPED,
}


class DependencyHandle(Struct):
    """State of one external dependency connection.

    Parameters
    ----------
    name : str
        Name used in logs and health reports.
    kind : DependencyKind
        Whether this is the store of record or the cache.
    criticality : Criticality
        Required dependencies are fatal when unavailable, optional ones degrade.
    state : ConnectionState
        Current connection state (the default is ``DISCONNECTED``).
    attempt : int
        Connection attempts made so far (the default is 0).
    last_error : str, optional
        Description of the most recent failure.
    client : Any, optional
        The live client once ``state`` is ``CONNECTED``; it exposes async
        ``probe()`` and ``close()``.
    """

    name: str
    kind: DependencyKind
    criticality: Criticality
    state: ConnectionState = field(default=ConnectionState.DISCONNECTED)
    attempt: int = field(default=0)
    last_error: str | None = field(default=None)
    client: Any = field(default=None)

    @classmethod
    def for_store(cls, name: str = STORE_NAME) -> DependencyHandle:
        return cls(name=name, kind=DependencyKind.STORE, criticality=Criticality.REQUIRED)

    @classmethod
    def for_cache(cls, name: str = CACHE_NAME) -> DependencyHandle:
        return cls(name=name, kind=DependencyKind.CACHE, criticality=Criticality.OPTIONAL)

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED and self.client is not None

    @property
    def is_required(self) -> bool:
        return self.criticality is Criticality.REQUIRED


class ServiceContext:
    """Process wide lifecycle state and the dependency handles.

    Built once at startup and handed to every component that needs a
    dependency. Only the supervisors and the shutdown coordinator write to it.
    """

    __slots__ = ("_state", "cache", "store")

    _state: ServiceState
    store: DependencyHandle | None
    cache: DependencyHandle | None

    def __init__(
        self,
        store: DependencyHandle | None = None,
        cache: DependencyHandle | None = None,
        *,
        state: ServiceState = ServiceState.BOOTING,
    ) -> None:
        self._state = state
        self.store = store
        self.cache = cache

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def store_connected(self) -> bool:
        return self.store is not None and self.store.is_connected

    @property
    def cache_connected(self) -> bool:
        return self.cache is not None and self.cache.is_connected

    def transition(self, target: ServiceState) -> None:
        """Move the service to the next lifecycle state.

        Parameters
        ----------
        target : ServiceState
            The state to move to. Must directly follow the current one.

        Raises
        ------
        InvalidStateTransitionError
            If ``target`` skips or reverses a state, or if serving is requested
            before the store is connected.
        """
        if _NEXT_STATE.get(self._state) is not target:
            raise InvalidStateTransitionError(self._state, target)

        if target is ServiceState.SERVING and not self.store_connected:
            raise InvalidStateTransitionError(self._state, target)

        LOGGER.info("Service state %s -> %s", self._state, target)
        self._state = target
