"""Model proxies: the driver-style CRUD surface over one collection."""

from __future__ import annotations

from typing import Any

from quarry.store.collection import Collection
from quarry.store.cursor import Cursor
from quarry.store.instance import HydratedDocument
from quarry.store.projection import Projection
from quarry.store.results import DeleteResult, UpdateResult


class ModelProxy:
    """Async facade so calling code cannot tell this store from a real backend.

    Each coroutine runs its collection operation synchronously, so a filtered
    update matches and writes without yielding to the event loop in between.
    """

    def __init__(self, model_name: str, collection: Collection) -> None:
        self.model_name = model_name
        self.collection = collection

    @property
    def collection_name(self) -> str:
        return self.collection.name

    def build(self, data: dict[str, Any] | None = None) -> HydratedDocument:
        """Unsaved instance; ``await instance.save()`` inserts it."""
        return self.collection.hydrate(dict(data or {}))

    def find(self, filter: Any = None) -> Cursor:
        return self.collection.find(filter)

    async def find_one(self, filter: Any = None, projection: Projection | None = None) -> HydratedDocument | None:
        return self.collection.find_one(filter, projection)

    async def find_by_id(self, document_id: Any) -> HydratedDocument | None:
        return self.collection.find_by_id(document_id)

    async def count_documents(self, filter: Any = None) -> int:
        return self.collection.count_documents(filter)

    async def aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return self.collection.aggregate(pipeline)

    async def create(self, doc: Any) -> HydratedDocument | list[HydratedDocument]:
        return self.collection.create(doc)

    async def update_one(self, filter: Any, update: Any, *, upsert: bool = False) -> UpdateResult:
        return self.collection.update_one(filter, update, upsert=upsert)

    async def update_many(self, filter: Any, update: Any) -> UpdateResult:
        return self.collection.update_many(filter, update)

    async def delete_one(self, filter: Any) -> DeleteResult:
        return self.collection.delete_one(filter)

    async def delete_many(self, filter: Any = None) -> DeleteResult:
        return self.collection.delete_many(filter)

    async def find_by_id_and_update(
        self,
        document_id: Any,
        update: Any,
        *,
        upsert: bool = False,
        new: bool = True,
    ) -> HydratedDocument | None:
        return self.collection.find_by_id_and_update(document_id, update, upsert=upsert, new=new)

    async def find_one_and_update(
        self,
        filter: Any,
        update: Any,
        *,
        upsert: bool = False,
        new: bool = True,
    ) -> HydratedDocument | None:
        return self.collection.find_one_and_update(filter, update, upsert=upsert, new=new)

    def __repr__(self) -> str:
        return f"ModelProxy({self.model_name!r}, collection={self.collection.name!r})"
