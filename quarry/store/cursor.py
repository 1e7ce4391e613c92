"""Lazily evaluated query cursor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, AsyncIterator, Generator

from quarry.store.filters import Filter, parse_filter
from quarry.store.projection import Projection, apply_projection
from quarry.store.values import sort_documents

if TYPE_CHECKING:
    from quarry.store.collection import Collection
    from quarry.store.instance import HydratedDocument


@dataclass(frozen=True, slots=True)
class PopulateOption:
    path: str
    select: Projection | None = None


class Cursor:
    """Chainable query descriptor; nothing runs until it is awaited."""

    def __init__(self, collection: "Collection", filter: Any = None) -> None:
        self._collection = collection
        self._filter: Filter = parse_filter(filter)
        self._projection: Projection | None = None
        self._sort: Any = None
        self._skip = 0
        self._limit: int | None = None
        self._lean = False
        self._populate: list[PopulateOption] = []

    def select(self, projection: Projection) -> "Cursor":
        self._projection = projection
        return self

    def sort(self, spec: Any) -> "Cursor":
        self._sort = spec
        return self

    def skip(self, count: int) -> "Cursor":
        self._skip = max(0, int(count))
        return self

    def limit(self, count: int) -> "Cursor":
        self._limit = int(count)
        return self

    def lean(self, enabled: bool = True) -> "Cursor":
        self._lean = bool(enabled)
        return self

    def populate(self, path: str, select: Projection | None = None) -> "Cursor":
        self._populate.append(PopulateOption(path=path, select=select))
        return self

    def resolve(self) -> list[dict[str, Any]] | list["HydratedDocument"]:
        collection = self._collection
        results = collection.filter_documents(self._filter)
        if self._sort:
            results = sort_documents(results, self._sort)
        if self._skip:
            results = results[self._skip :]
        if self._limit is not None:
            results = results[: self._limit]

        processed: list[Any] = []
        for doc in results:
            for option in self._populate:
                doc = collection.populate(doc, option.path, option.select)
            if self._projection:
                doc = apply_projection(doc, self._projection, identity_field=collection.identity_field)
            processed.append(doc if self._lean else collection.hydrate(doc))
        return processed

    async def exec(self) -> list[Any]:
        return self.resolve()

    def __await__(self) -> Generator[Any, None, list[Any]]:
        return self.exec().__await__()

    async def __aiter__(self) -> AsyncIterator[Any]:
        for item in self.resolve():
            yield item
