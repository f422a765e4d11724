import copy

from locsync.merge import is_complete, is_filled, merge_fields, merge_localized
from locsync.schema import SchemaRegistry, default_registry


ALL = {"en": "Hi", "de": "Hallo", "es": "Hola", "fr": "Salut", "ja": "Konnichiwa", "ko": "Annyeong", "ru": "Privet", "zh": "Ni hao"}


def _resource_registry():
    return SchemaRegistry.from_dict({"resource": {"fields": ["val"]}})


def _resource(entry_id, val):
    return {"id": entry_id, "contentType": "resource", "fields": {"val": val}}


def test_is_filled():
    assert is_filled("x")
    assert not is_filled("   ")
    assert not is_filled(None)
    assert is_filled({"nodeType": "document"})


def test_empty_translation_never_erases_existing_value():
    registry = _resource_registry()
    node = registry.require("resource")

    merged = merge_fields({"val": {"en": "Hi"}}, {"val": {"en": "", "de": "Hallo"}}, node, registry)

    assert merged == {"val": {"en": "Hi", "de": "Hallo"}}
    assert not is_complete(merged, node, registry)


def test_empty_incoming_keeps_complete_entry():
    registry = _resource_registry()
    node = registry.require("resource")
    current = {"val": dict(ALL)}

    merged = merge_fields(current, {}, node, registry)

    assert merged == current
    assert is_complete(merged, node, registry)


def test_merge_does_not_mutate_inputs():
    registry = _resource_registry()
    node = registry.require("resource")
    current = {"val": {"en": "Hi"}}
    incoming = {"val": {"de": "Hallo"}}
    snapshot = (copy.deepcopy(current), copy.deepcopy(incoming))

    merge_fields(current, incoming, node, registry)

    assert (current, incoming) == snapshot


def test_merge_is_idempotent():
    registry = _resource_registry()
    node = registry.require("resource")
    merged = merge_fields({"val": {"en": "Hi"}}, {"val": {"de": "Hallo"}}, node, registry)

    assert merge_fields(merged, merged, node, registry) == merged


def test_scalar_field_is_overwritten():
    registry = SchemaRegistry.from_dict({"product": {"fields": ["sku", "title"], "scalarFields": ["sku"]}})
    node = registry.require("product")

    merged = merge_fields({"sku": "A-1", "title": {"en": "Mug"}}, {"sku": "A-2"}, node, registry)

    assert merged == {"sku": "A-2", "title": {"en": "Mug"}}


def test_undeclared_field_is_ignored():
    registry = _resource_registry()
    node = registry.require("resource")

    merged = merge_fields({"val": {"en": "Hi"}}, {"extra": {"de": "x"}}, node, registry)

    assert merged == {"val": {"en": "Hi"}}


def test_non_localized_shape_keeps_current():
    assert merge_localized({"en": "Hi"}, "Hallo") == {"en": "Hi"}
    assert merge_localized(None, {"de": "Hallo", "fr": " "}) == {"de": "Hallo"}


def test_reference_array_merges_by_position():
    registry = default_registry()
    node = registry.require("resourceSet")
    current = {"resources": {"en": [_resource("r1", {"en": "One"})]}}
    incoming = {
        "resources": {
            "en": [
                _resource("r1", {"en": "", "de": "Eins"}),
                _resource("r2", {"en": "Two"}),
            ]
        }
    }

    merged = merge_fields(current, incoming, node, registry)

    items = merged["resources"]["en"]
    assert len(items) == 2
    assert items[0] == _resource("r1", {"en": "One", "de": "Eins"})
    assert items[1] == incoming["resources"]["en"][1]


def test_reference_array_keeps_trailing_live_items():
    registry = default_registry()
    node = registry.require("resourceSet")
    current = {"resources": {"en": [_resource("r1", {"en": "One"}), _resource("r2", {"en": "Two"})]}}
    incoming = {"resources": {"en": [_resource("r1", {"de": "Eins"})]}}

    merged = merge_fields(current, incoming, node, registry)

    assert [item["id"] for item in merged["resources"]["en"]] == ["r1", "r2"]
    assert merged["resources"]["en"][1] == current["resources"]["en"][1]


def test_single_reference_merges_nested_fields():
    registry = default_registry()
    node = registry.require("storeOffer")
    badge = {"id": "b1", "contentType": "storeBadge", "fields": {"text": {"en": "New"}}}
    incoming_badge = {"id": "b1", "contentType": "storeBadge", "fields": {"text": {"de": "Neu"}}}

    merged = merge_fields({"badge": {"en": badge}}, {"badge": {"en": incoming_badge}}, node, registry)

    assert merged["badge"]["en"]["fields"]["text"] == {"en": "New", "de": "Neu"}


def test_node_without_fields_is_never_complete():
    registry = SchemaRegistry.from_dict({"empty": {}})

    assert not is_complete({}, registry.require("empty"), registry)


def test_completeness_recurses_into_references():
    registry = default_registry()
    node = registry.require("resourceSet")
    partial = dict(ALL)
    del partial["ko"]

    assert is_complete({"resources": {"en": [_resource("r1", ALL), _resource("r2", ALL)]}}, node, registry)
    assert not is_complete({"resources": {"en": [_resource("r1", ALL), _resource("r2", partial)]}}, node, registry)
    assert not is_complete({"resources": {"en": []}}, node, registry)
    assert not is_complete({}, node, registry)


def test_completeness_ignores_scalar_fields():
    registry = SchemaRegistry.from_dict({"product": {"fields": ["sku", "title"], "scalarFields": ["sku"]}})
    node = registry.require("product")

    assert is_complete({"title": dict(ALL)}, node, registry)


def test_absent_optional_reference_does_not_block_completeness():
    registry = default_registry()
    node = registry.require("storeOffer")
    merged = {"title": dict(ALL), "description": dict(ALL)}

    assert is_complete(merged, node, registry)

    badge = {"id": "b1", "contentType": "storeBadge", "fields": {"text": {"en": "New"}}}
    assert not is_complete({**merged, "badge": {"en": badge}}, node, registry)
