from __future__ import annotations

import datetime
import time

__all__ = ("elapsed_ms", "utcnow")


def utcnow() -> datetime.datetime:
    """Return the current UTC datetime.

    Returns
    -------
    datetime.datetime
        The current UTC datetime with timezone information.
    """
    return datetime.datetime.now(datetime.UTC)


def elapsed_ms(started: float) -> float:
    """Milliseconds elapsed since ``started``, a :func:`time.perf_counter` value."""
    return round((time.perf_counter() - started) * 1000, 3)
