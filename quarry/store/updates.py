"""Update engine: operator updates and whole-document merges."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from quarry.core.logging import get_logger
from quarry.store.paths import get_path, set_path
from quarry.store.values import clone, to_number, values_equal


logger = get_logger("quarry.store.updates")


@dataclass(frozen=True, slots=True)
class SetFields:
    fields: dict[str, Any]

    def apply(self, doc: dict[str, Any], *, inserting: bool) -> None:
        for path, value in self.fields.items():
            set_path(doc, path, clone(value))


@dataclass(frozen=True, slots=True)
class SetOnInsertFields:
    fields: dict[str, Any]

    def apply(self, doc: dict[str, Any], *, inserting: bool) -> None:
        if not inserting:
            return
        for path, value in self.fields.items():
            set_path(doc, path, clone(value))


@dataclass(frozen=True, slots=True)
class IncFields:
    fields: dict[str, Any]

    def apply(self, doc: dict[str, Any], *, inserting: bool) -> None:
        for path, amount in self.fields.items():
            current = get_path(doc, path)
            set_path(doc, path, to_number(current) + to_number(amount))


def _items_to_append(value: Any) -> list[Any]:
    if isinstance(value, dict) and set(value) == {"$each"} and isinstance(value["$each"], list):
        return [clone(item) for item in value["$each"]]
    return [clone(value)]


@dataclass(frozen=True, slots=True)
class PushFields:
    fields: dict[str, Any]

    def apply(self, doc: dict[str, Any], *, inserting: bool) -> None:
        for path, value in self.fields.items():
            items = _items_to_append(value)
            current = get_path(doc, path)
            if isinstance(current, list):
                current.extend(items)
            else:
                set_path(doc, path, items)


@dataclass(frozen=True, slots=True)
class AddToSetFields:
    fields: dict[str, Any]

    def apply(self, doc: dict[str, Any], *, inserting: bool) -> None:
        for path, value in self.fields.items():
            current = get_path(doc, path)
            if not isinstance(current, list):
                current = []
                set_path(doc, path, current)
            for item in _items_to_append(value):
                if not any(values_equal([existing], [item]) for existing in current):
                    current.append(item)


@dataclass(frozen=True, slots=True)
class IgnoredOperator:
    name: str

    def apply(self, doc: dict[str, Any], *, inserting: bool) -> None:
        return


UpdateOperator = Union[SetFields, SetOnInsertFields, IncFields, PushFields, AddToSetFields, IgnoredOperator]

_OPERATOR_TYPES: dict[str, type] = {
    "$set": SetFields,
    "$setOnInsert": SetOnInsertFields,
    "$inc": IncFields,
    "$push": PushFields,
    "$addToSet": AddToSetFields,
}


@dataclass(frozen=True, slots=True)
class Replacement:
    """Shallow merge of a plain document into the target."""

    fields: dict[str, Any]

    def apply(self, doc: dict[str, Any], *, inserting: bool = False) -> None:
        doc.update(clone(self.fields))


@dataclass(frozen=True, slots=True)
class OperatorUpdate:
    operators: tuple[UpdateOperator, ...]

    def apply(self, doc: dict[str, Any], *, inserting: bool = False) -> None:
        for operator in self.operators:
            operator.apply(doc, inserting=inserting)


Update = Union[Replacement, OperatorUpdate]


def parse_update(spec: Any) -> Update:
    if isinstance(spec, (Replacement, OperatorUpdate)):
        return spec
    if not isinstance(spec, dict):
        raise TypeError(f"update must be a dict, not {type(spec).__name__}")
    if not any(str(key).startswith("$") for key in spec):
        return Replacement(fields=dict(spec))
    operators: list[UpdateOperator] = []
    for name, value in spec.items():
        operator_type = _OPERATOR_TYPES.get(name)
        if operator_type is None:
            logger.warning(
                "unsupported update operator ignored",
                extra={"event_action": "update_operator_ignored", "payload": {"operator": name}},
            )
            operators.append(IgnoredOperator(name=name))
            continue
        operators.append(operator_type(fields=dict(value or {})))
    return OperatorUpdate(operators=tuple(operators))


def apply_update(doc: dict[str, Any], spec: Any, *, inserting: bool = False) -> None:
    parse_update(spec).apply(doc, inserting=inserting)
