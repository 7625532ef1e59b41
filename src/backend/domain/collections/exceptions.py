from __future__ import annotations

from backend.lib.exceptions import NotFoundError

__all__ = ("CollectionNotFoundError",)


class CollectionNotFoundError(NotFoundError):
    """Raised when a collection is not served by this service."""

    def __init__(self, collection: str) -> None:
        super().__init__(f"Collection {collection!r} does not exist.")
