"""Value normalization, comparison, ordering and cloning."""

from __future__ import annotations

import copy
from datetime import UTC, date, datetime
import functools
import math
from typing import Any, Callable, Iterable
import uuid

from bson import ObjectId

from quarry.store.paths import MISSING, get_path


def generate_id() -> str:
    return str(ObjectId())


def utcnow() -> datetime:
    return datetime.now(UTC)


def clone(value: Any) -> Any:
    return copy.deepcopy(value)


def normalize(value: Any) -> Any:
    """Canonicalize identifier wrappers to their string form."""
    if isinstance(value, (ObjectId, uuid.UUID)):
        return str(value)
    return value


def normalize_deep(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: normalize_deep(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize_deep(item) for item in value]
    return normalize(value)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def to_number(value: Any) -> int | float:
    """Numeric coercion used by ``$inc``; unusable values count as zero."""
    if is_number(value):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return 0
        return int(parsed) if parsed.is_integer() else parsed
    return 0


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def to_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if is_number(value):
        try:
            return datetime.fromtimestamp(value / 1000.0, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def _scalar_equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    if isinstance(left, datetime) and isinstance(right, datetime):
        return _as_utc(left) == _as_utc(right)
    return left == right


def values_equal(actual: Any, expected: Any) -> bool:
    """Equality with identifier normalization and array-contains semantics."""
    left = normalize_deep(actual)
    right = normalize_deep(expected)
    if isinstance(left, list) and not isinstance(right, list):
        return any(_scalar_equal(item, right) for item in left)
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(_scalar_equal(a, b) for a, b in zip(left, right))
    return _scalar_equal(left, right)


_ORDER_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "$gt": lambda a, b: a > b,
    "$gte": lambda a, b: a >= b,
    "$lt": lambda a, b: a < b,
    "$lte": lambda a, b: a <= b,
}


def compare(actual: Any, expected: Any, op: str) -> bool:
    """Ordering comparison that fails (False) for incompatible operand types."""
    check = _ORDER_OPS[op]
    actual = normalize(actual)
    expected = normalize(expected)
    if is_number(actual) and is_number(expected):
        return check(actual, expected)
    if isinstance(actual, str) and isinstance(expected, str):
        return check(actual, expected)
    if isinstance(actual, datetime):
        expected_date = to_datetime(expected)
        if expected_date is not None:
            return check(_as_utc(actual), expected_date)
    return False


def _order(left: Any, right: Any) -> int:
    left = normalize(left)
    right = normalize(right)
    if is_number(left) and is_number(right):
        pass
    elif isinstance(left, str) and isinstance(right, str):
        pass
    elif isinstance(left, bool) and isinstance(right, bool):
        pass
    elif isinstance(left, datetime) and isinstance(right, datetime):
        left, right = _as_utc(left), _as_utc(right)
    else:
        return 0
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def _is_null(value: Any) -> bool:
    return value is MISSING or value is None


def parse_sort_spec(spec: Any) -> list[tuple[str, int]]:
    """Accept ``{"a": 1, "b": -1}``, ``[("a", 1)]`` or ``"a -b"``."""
    if spec is None:
        return []
    if isinstance(spec, str):
        keys: list[tuple[str, int]] = []
        for token in spec.split():
            if token.startswith("-"):
                keys.append((token[1:], -1))
            else:
                keys.append((token.lstrip("+"), 1))
        return [(field, direction) for field, direction in keys if field]
    items: Iterable[Any] = spec.items() if isinstance(spec, dict) else spec
    keys = []
    for field, direction in items:
        if isinstance(direction, str):
            direction = -1 if direction.lower() in {"-1", "desc", "descending"} else 1
        keys.append((str(field), -1 if int(direction) < 0 else 1))
    return keys


def sort_documents(docs: list[dict[str, Any]], spec: Any) -> list[dict[str, Any]]:
    """Stable multi-key sort; missing and null values sort last in both directions."""
    keys = parse_sort_spec(spec)
    if not keys:
        return list(docs)

    def _cmp(left: dict[str, Any], right: dict[str, Any]) -> int:
        for field, direction in keys:
            left_value = get_path(left, field)
            right_value = get_path(right, field)
            left_null = _is_null(left_value)
            right_null = _is_null(right_value)
            if left_null and right_null:
                continue
            if left_null:
                return 1
            if right_null:
                return -1
            result = _order(left_value, right_value) * direction
            if result:
                return result
        return 0

    return sorted(docs, key=functools.cmp_to_key(_cmp))


def to_json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (ObjectId, uuid.UUID)):
        return str(value)
    return value
