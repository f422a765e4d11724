from __future__ import annotations

import copy
import logging
from typing import Any

from .schema import SUPPORTED_LANGUAGES, FieldKind, SchemaNode, SchemaRegistry


log = logging.getLogger("locsync.merge")


def is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def merge_localized(current: Any, incoming: Any) -> Any:
    """Per-language merge: a translated value wins only when it is non-empty
    after trimming, so an empty cell never erases an existing translation."""
    if not isinstance(incoming, dict):
        log.warning("ignoring localized value without per-language shape: %r", incoming)
        return copy.deepcopy(current)
    merged: dict[str, Any] = dict(current) if isinstance(current, dict) else {}
    for lang, value in incoming.items():
        if is_filled(value):
            merged[lang] = value
    return merged


def merge_fields(
    current: dict[str, Any],
    incoming: dict[str, Any],
    node: SchemaNode,
    registry: SchemaRegistry,
) -> dict[str, Any]:
    merged = copy.deepcopy(current or {})
    for field_name, value in (incoming or {}).items():
        kind = node.kind_of(field_name)
        if kind is None:
            log.warning("field %s is not declared on %s; ignored", field_name, node.id)
            continue
        if kind == FieldKind.SCALAR:
            merged[field_name] = copy.deepcopy(value)
        elif kind in (FieldKind.LOCALIZED_TEXT, FieldKind.LONG_FORM):
            merged[field_name] = merge_localized(merged.get(field_name), value)
        else:
            target = registry.target_of(node.references[field_name])
            merged[field_name] = _merge_reference(merged.get(field_name), value, target, registry)
    return merged


def _merge_reference(
    current: Any,
    incoming: Any,
    target: SchemaNode,
    registry: SchemaRegistry,
) -> Any:
    if not isinstance(incoming, dict):
        return copy.deepcopy(current)
    merged: dict[str, Any] = copy.deepcopy(current) if isinstance(current, dict) else {}
    for locale, value in incoming.items():
        existing = merged.get(locale)
        if isinstance(value, list):
            existing_list = existing if isinstance(existing, list) else []
            # Alignment is by position, not by entry id.
            out = []
            for idx, item in enumerate(value):
                if idx < len(existing_list):
                    out.append(_merge_document(existing_list[idx], item, target, registry))
                else:
                    out.append(copy.deepcopy(item))
            out.extend(existing_list[len(value) :])
            merged[locale] = out
        elif isinstance(value, dict):
            if isinstance(existing, dict):
                merged[locale] = _merge_document(existing, value, target, registry)
            else:
                merged[locale] = copy.deepcopy(value)
    return merged


def _merge_document(
    current: Any,
    incoming: Any,
    target: SchemaNode,
    registry: SchemaRegistry,
) -> Any:
    if not isinstance(incoming, dict):
        return current
    if not isinstance(current, dict):
        return copy.deepcopy(incoming)
    if incoming.get("id") and current.get("id") and incoming["id"] != current["id"]:
        log.warning(
            "reference order differs: translated %s merged into live %s",
            incoming["id"],
            current["id"],
        )
    merged = dict(current)
    merged["fields"] = merge_fields(
        current.get("fields") or {},
        incoming.get("fields") or {},
        target,
        registry,
    )
    return merged


def is_complete(
    merged: dict[str, Any],
    node: SchemaNode,
    registry: SchemaRegistry,
    languages: tuple[str, ...] = SUPPORTED_LANGUAGES,
) -> bool:
    """True when every localizable field of every node in the subtree has a
    non-empty value for every language.

    A subtree with nothing to check (no declared fields, or only empty
    reference slots) is never considered localized.
    """
    if not node.fields and not node.references:
        return False
    checked = False
    for field_name in node.localized_fields():
        value = merged.get(field_name)
        if not isinstance(value, dict):
            return False
        if not all(is_filled(value.get(lang)) for lang in languages):
            return False
        checked = True

    for ref_field, ref in node.references.items():
        value = merged.get(ref_field)
        if not isinstance(value, dict):
            continue
        target = registry.target_of(ref)
        for docs in value.values():
            for doc in docs if isinstance(docs, list) else [docs]:
                if not isinstance(doc, dict):
                    return False
                if not is_complete(doc.get("fields") or {}, target, registry, languages):
                    return False
                checked = True
    return checked
