from __future__ import annotations

from typing import Any

from litestar import Controller, get
from litestar.di import Provide

from backend.lib.dependencies import provide_collection_reader

from .services import CacheAsideReader  # noqa: TC001

__all__ = ("CollectionController",)


class CollectionController(Controller):
    """Collection controller."""

    tags = ["Collections"]
    path = "/"
    dependencies = {
        "collection_reader": Provide(provide_collection_reader, sync_to_thread=False)
    }

    @get(path="/{collection:str}")
    async def list_collection(
        self, collection_reader: CacheAsideReader, collection: str
    ) -> list[dict[str, Any]]:
        """List every item of a collection, served from the cache when possible."""
        result = await collection_reader.read_collection(collection)
        return result.rows
