from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from backend.lib.exceptions import RetriesExhaustedError

from .context import ConnectionState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from typing import Final

    from backend.config.app import RetryConfig

    from .context import DependencyHandle

    type Sleep = Callable[[float], Awaitable[object]]

__all__ = ("compute_next_delay", "connect_with_retry")


LOGGER: Final = logging.getLogger(__name__)


def compute_next_delay(policy: RetryConfig, attempt: int) -> float:  # noqa: ARG001
    """Return the number of seconds to wait after a failed ``attempt``.

    The delay is constant; the attempt number is accepted so the backoff
    strategy can change without touching the retry loop.

    Parameters
    ----------
    policy : RetryConfig
        The retry policy of the dependency.
    attempt : int
        The 1-based number of the attempt that just failed.

    Returns
    -------
    float
        Delay in seconds.
    """
    return policy.delay


async def connect_with_retry[T](
    handle: DependencyHandle,
    policy: RetryConfig,
    connect: Callable[[], Awaitable[T]],
    *,
    sleep: Sleep = asyncio.sleep,
    on_failure: Callable[[], object] | None = None,
) -> T:
    """Try to connect a dependency up to ``policy.attempts`` times.

    The handle is updated as the loop progresses: ``CONNECTING`` while
    attempts are made, ``CONNECTED`` with the client on success and ``FAILED``
    with the last error once the budget is exhausted. No delay follows the
    final attempt.

    Parameters
    ----------
    handle : DependencyHandle
        The handle to update.
    policy : RetryConfig
        How many attempts to make and how long to wait between them.
    connect : Callable[[], Awaitable[T]]
        Factory creating and verifying a new client.
    sleep : Callable[[float], Awaitable[object]], optional
        Coroutine function used to wait between attempts
        (the default is :func:`asyncio.sleep`).
    on_failure : Callable[[], object], optional
        Called after each failed attempt, e.g. to bump a metric.

    Returns
    -------
    T
        The connected client.

    Raises
    ------
    RetriesExhaustedError
        If every attempt failed, chained to the error of the final attempt.
    """
    handle.state = ConnectionState.CONNECTING
    last_error: Exception | None = None

    for attempt in range(1, policy.attempts + 1):
        handle.attempt = attempt
        LOGGER.info(
            "%s connection attempt %d/%d", handle.name, attempt, policy.attempts
        )

        try:
            client = await connect()
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            handle.last_error = str(exc) or type(exc).__name__
            if on_failure is not None:
                on_failure()
            LOGGER.warning(
                "%s connection failed (attempt %d/%d): %s",
                handle.name,
                attempt,
                policy.attempts,
                handle.last_error,
            )
        else:
            handle.client = client
            handle.last_error = None
            handle.state = ConnectionState.CONNECTED
            LOGGER.info("%s connected after %d attempt(s)", handle.name, attempt)
            return client

        if attempt < policy.attempts:
            delay = compute_next_delay(policy, attempt)
            LOGGER.info("Retrying %s in %.1f seconds...", handle.name, delay)
            await sleep(delay)

    handle.state = ConnectionState.FAILED
    raise RetriesExhaustedError(handle.name, policy.attempts, last_error) from last_error
