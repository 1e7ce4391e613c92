"""Dotted field-path helpers shared by every store component."""

from __future__ import annotations

from typing import Any


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> "_Missing":
        return self


MISSING: Any = _Missing()


def split_path(path: str) -> list[str]:
    return [segment for segment in path.split(".") if segment]


def get_path(doc: Any, path: str | None) -> Any:
    """Resolve ``a.b.c`` against nested dicts (and list indexes).

    Returns ``MISSING`` when any intermediate segment is absent or ``None``.
    An empty path addresses the whole document.
    """
    if doc is None or doc is MISSING:
        return MISSING
    if not path:
        return doc
    current = doc
    for segment in split_path(path):
        if current is None or current is MISSING:
            return MISSING
        if isinstance(current, dict):
            current = current.get(segment, MISSING)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else MISSING
        else:
            return MISSING
    return current


def _child(container: Any, segment: str) -> Any:
    if isinstance(container, list):
        index = int(segment)
        return container[index] if index < len(container) else None
    return container.get(segment)


def _put(container: Any, segment: str, value: Any) -> None:
    if isinstance(container, list):
        index = int(segment)
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
    else:
        container[segment] = value


def _traversable(node: Any, segment: str) -> bool:
    return isinstance(node, dict) or (isinstance(node, list) and segment.isdigit())


def set_path(doc: dict[str, Any], path: str, value: Any) -> None:
    """Assign ``value`` at ``path``, indexing into arrays on numeric segments.

    Absent or scalar intermediates become empty dicts; short arrays are padded
    with ``None`` up to the addressed index.
    """
    segments = split_path(path)
    if not segments:
        return
    current: Any = doc
    for segment, following in zip(segments, segments[1:]):
        node = _child(current, segment)
        if not _traversable(node, following):
            node = {}
            _put(current, segment, node)
        current = node
    _put(current, segments[-1], value)


def remove_path(doc: dict[str, Any], path: str) -> None:
    segments = split_path(path)
    if not segments:
        return
    current: Any = doc
    for segment in segments[:-1]:
        if not _traversable(current, segment):
            return
        current = _child(current, segment)
        if not current:
            return
    if isinstance(current, dict):
        current.pop(segments[-1], None)
