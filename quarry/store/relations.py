"""Relation ("populate") resolution across collections."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from quarry.store.paths import MISSING, get_path, remove_path, set_path
from quarry.store.projection import Projection, apply_projection

if TYPE_CHECKING:
    from quarry.store.database import Database


def populate_document(
    doc: dict[str, Any],
    *,
    database: "Database",
    collection_name: str,
    path: str,
    select: Projection | None = None,
) -> dict[str, Any]:
    """Replace the foreign key at ``path`` with the referenced document.

    Non-relation paths, empty values and dangling references leave ``doc``
    untouched. Only single-document references are resolved.
    """
    target_name = database.config.relation_target(collection_name, path)
    if target_name is None:
        return doc
    value = get_path(doc, path)
    if value is MISSING or not value or isinstance(value, (dict, list)):
        return doc
    target = database.collection(target_name)
    related = target.filter_documents({database.config.identity_field: value})
    if not related:
        return doc
    populated = related[0]
    if select:
        populated = apply_projection(populated, select, identity_field=database.config.identity_field)
    set_path(doc, path, populated)
    return doc


def depopulate_document(doc: dict[str, Any], *, database: "Database", collection_name: str) -> dict[str, Any]:
    """Collapse populated relation paths back to the referenced identity.

    A populated value whose selection dropped the identity is removed so the
    stored foreign key is kept.
    """
    identity_field = database.config.identity_field
    for path in database.config.relations.get(collection_name, {}):
        value = get_path(doc, path)
        if not isinstance(value, dict):
            continue
        reference = value.get(identity_field, MISSING)
        if reference is MISSING:
            remove_path(doc, path)
        else:
            set_path(doc, path, reference)
    return doc
