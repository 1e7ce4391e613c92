"""Hydrated (non-lean) query results."""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping
from typing import TYPE_CHECKING, Any

from quarry.store.values import clone, normalize, to_json_safe

if TYPE_CHECKING:
    from quarry.store.collection import Collection


class HydratedDocument(MutableMapping[str, Any]):
    """A document copy bound to its owning collection.

    The instance owns its data exclusively until ``save`` merges it back;
    top-level keys deleted from the instance are removed on save.
    Fields are available as mapping keys and, for reads, as attributes.
    """

    __slots__ = ("_data", "_collection", "_removed")

    def __init__(self, data: dict[str, Any], collection: "Collection") -> None:
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_collection", collection)
        object.__setattr__(self, "_removed", set())

    @property
    def id(self) -> str | None:
        value = self._data.get(self._collection.identity_field)
        return None if value is None else str(normalize(value))

    @property
    def collection_name(self) -> str:
        return self._collection.name

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._removed.discard(key)

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._removed.add(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        data = object.__getattribute__(self, "_data")
        try:
            return data[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HydratedDocument):
            return self._data == other._data
        if isinstance(other, dict):
            return self._data == other
        return NotImplemented

    def __copy__(self) -> "HydratedDocument":
        return HydratedDocument(dict(self._data), self._collection)

    def __deepcopy__(self, memo: dict[int, Any]) -> "HydratedDocument":
        return HydratedDocument(clone(self._data), self._collection)

    def __repr__(self) -> str:
        return f"HydratedDocument({self._collection.name}, {self._data!r})"

    async def save(self) -> "HydratedDocument":
        stored = self._collection.save_document(self._data, removed=self._removed)
        object.__setattr__(self, "_data", stored)
        self._removed.clear()
        return self

    def to_object(self) -> dict[str, Any]:
        return clone(self._data)

    def to_json(self) -> dict[str, Any]:
        return to_json_safe(clone(self._data))
