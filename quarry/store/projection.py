"""Field inclusion/exclusion projections for cursors and ``$project``."""

from __future__ import annotations

from typing import Any

from quarry.core.logging import get_logger
from quarry.store.paths import MISSING, get_path, remove_path, set_path
from quarry.store.values import clone


logger = get_logger("quarry.store.projection")

Projection = str | dict[str, Any]


def _split_projection(projection: Projection) -> tuple[list[str], list[str]]:
    includes: list[str] = []
    excludes: list[str] = []
    if isinstance(projection, str):
        for token in projection.split():
            if token.startswith("-"):
                if token[1:]:
                    excludes.append(token[1:])
            else:
                includes.append(token.lstrip("+"))
        return includes, excludes
    for field, flag in projection.items():
        if isinstance(flag, bool):
            selected = flag
        elif isinstance(flag, (int, float)):
            selected = flag != 0
        else:
            selected = str(flag).strip() not in {"", "0", "false"}
        (includes if selected else excludes).append(str(field))
    return includes, excludes


def apply_projection(doc: dict[str, Any], projection: Projection | None, *, identity_field: str = "_id") -> dict[str, Any]:
    """Return a projected copy of ``doc``.

    Inclusion wins over exclusion: when any field is included only those fields
    (plus the identity) survive. String ``-`` tokens are then removed from that
    picked result, which is how ``-_id`` drops the identity; in dict form only
    ``{identity: 0}`` is honoured alongside inclusions.
    """
    if not projection:
        return doc
    includes, excludes = _split_projection(projection)
    source = clone(doc)

    if not includes:
        for path in excludes:
            remove_path(source, path)
        return source

    if excludes and set(excludes) != {identity_field}:
        logger.debug(
            "mixed projection resolved as inclusion",
            extra={"event_action": "projection_mixed", "payload": {"include": includes, "exclude": excludes}},
        )
    picked: dict[str, Any] = {}
    if identity_field in source:
        picked[identity_field] = source[identity_field]
    for path in includes:
        value = get_path(source, path)
        if value is not MISSING:
            set_path(picked, path, value)
    # Dict projections only honour an identity exclusion; string `-` tokens all apply.
    dropped = excludes if isinstance(projection, str) else [path for path in excludes if path == identity_field]
    for path in dropped:
        remove_path(picked, path)
    return picked
