import copy

from quarry.store.paths import MISSING, get_path, remove_path, set_path


def test_get_path_resolves_nested_fields_and_list_indexes() -> None:
    doc = {"profile": {"address": {"city": "Lisbon"}}, "tags": ["a", "b"]}
    assert get_path(doc, "profile.address.city") == "Lisbon"
    assert get_path(doc, "tags.1") == "b"
    assert get_path(doc, "tags.5") is MISSING


def test_get_path_returns_missing_through_absent_or_null_segments() -> None:
    doc = {"profile": None, "name": "x"}
    assert get_path(doc, "profile.address") is MISSING
    assert get_path(doc, "nope.deeper") is MISSING
    assert get_path(doc, "name.length") is MISSING
    assert get_path(None, "name") is MISSING


def test_empty_path_addresses_whole_document() -> None:
    doc = {"a": 1}
    assert get_path(doc, "") is doc


def test_set_path_creates_intermediate_nodes() -> None:
    doc: dict = {"meta": "scalar"}
    set_path(doc, "a.b.c", 3)
    set_path(doc, "meta.note", "replaced")
    assert doc == {"meta": {"note": "replaced"}, "a": {"b": {"c": 3}}}


def test_remove_path_only_touches_existing_chain() -> None:
    doc = {"a": {"b": 1, "c": 2}}
    remove_path(doc, "a.b")
    remove_path(doc, "x.y")
    remove_path(doc, "a.c.d")
    assert doc == {"a": {"c": 2}}


def test_missing_sentinel_is_falsy_and_survives_copies() -> None:
    assert not MISSING
    assert copy.deepcopy({"v": MISSING})["v"] is MISSING
    assert copy.copy(MISSING) is MISSING


def test_set_path_indexes_into_existing_arrays() -> None:
    doc: dict = {"items": [{"qty": 1}, {"qty": 2}], "tags": ["a"]}
    set_path(doc, "items.0.qty", 5)
    set_path(doc, "tags.2", "c")
    assert doc == {"items": [{"qty": 5}, {"qty": 2}], "tags": ["a", None, "c"]}


def test_set_path_replaces_array_addressed_by_field_name() -> None:
    doc: dict = {"items": [1, 2]}
    set_path(doc, "items.total", 3)
    assert doc == {"items": {"total": 3}}


def test_remove_path_descends_through_array_indexes() -> None:
    doc = {"items": [{"qty": 1, "sku": "a"}]}
    remove_path(doc, "items.0.sku")
    assert doc == {"items": [{"qty": 1}]}
