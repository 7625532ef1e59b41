from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Histogram

if TYPE_CHECKING:
    from typing import Final

__all__ = (
    "CACHE_CONNECTION_RETRIES",
    "DATABASE_CONNECTION_RETRIES",
    "DATABASE_QUERY_DURATION",
)


DATABASE_CONNECTION_RETRIES: Final = Counter(
    "database_connection_retries_total",
    "Total number of database connection retries",
)

CACHE_CONNECTION_RETRIES: Final = Counter(
    "cache_connection_retries_total",
    "Total number of cache connection retries",
)

DATABASE_QUERY_DURATION: Final = Histogram(
    "database_query_duration_ms",
    "Duration of database queries in ms",
    labelnames=("operation", "table"),
    buckets=(0.1, 1, 5, 10, 25, 50),
)
