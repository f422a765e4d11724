from __future__ import annotations

import copy
import html
import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from .contentful import ContentfulClient, ContentfulError, Entry
from .exporter import TypeMismatch
from .merge import is_filled
from .ratelimit import RateLimiter, call
from .richtext import from_text, is_document, to_text
from .schema import FieldKind, SchemaNode, SchemaRegistry


log = logging.getLogger("locsync.writeback")


@dataclass
class ApplyResult:
    updated: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class WriteBack:
    client: ContentfulClient
    registry: SchemaRegistry
    limiter: RateLimiter | None = None

    def apply(self, entry_id: str, merged_fields: dict[str, Any], node: SchemaNode) -> ApplyResult:
        """Write merged values into the live entry and every referenced entry.

        Failures on the root entry propagate; failures on referenced entries
        are logged and recorded in ``ApplyResult.failed``.
        """
        result = ApplyResult()
        self._apply(entry_id, merged_fields, node, result, set())
        return result

    def _apply(
        self,
        entry_id: str,
        merged_fields: dict[str, Any],
        node: SchemaNode,
        result: ApplyResult,
        seen: set[str],
    ) -> None:
        seen.add(entry_id)
        entry = call(self.limiter, self.client.get_entry, entry_id)
        if entry.content_type != node.id:
            raise TypeMismatch(entry.id, node.id, entry.content_type)

        changed = assign_fields(entry, merged_fields, node)
        if changed:
            call(self.limiter, self.client.update_entry, entry)
            result.updated.append(entry.id)
            log.info("updated entry %s fields=%s", entry.id, ",".join(changed))
        else:
            result.unchanged.append(entry.id)

        for ref_field, ref in node.references.items():
            value = merged_fields.get(ref_field)
            if not isinstance(value, dict):
                continue
            target = self.registry.target_of(ref)
            for docs in value.values():
                for doc in docs if isinstance(docs, list) else [docs]:
                    if not isinstance(doc, dict) or not doc.get("id") or doc["id"] in seen:
                        continue
                    try:
                        self._apply(str(doc["id"]), doc.get("fields") or {}, target, result, seen)
                    except (ContentfulError, TypeMismatch, requests.RequestException) as exc:
                        log.warning("Failed to update reference %s.%s=%s: %s", entry.id, ref_field, doc["id"], exc)
                        result.failed.append(str(doc["id"]))


def assign_fields(entry: Entry, merged_fields: dict[str, Any], node: SchemaNode) -> list[str]:
    changed: list[str] = []
    for field_name in node.fields:
        if field_name not in merged_fields:
            continue
        value = merged_fields[field_name]
        live = entry.fields.get(field_name)
        kind = node.kind_of(field_name)
        if kind == FieldKind.SCALAR:
            updated = copy.deepcopy(value)
        elif kind == FieldKind.LONG_FORM:
            updated = _long_form_update(live, value)
        else:
            updated = _localized_update(live, value)
        if updated != live:
            entry.fields[field_name] = updated
            changed.append(field_name)
    return changed


def _localized_update(live: Any, value: Any) -> Any:
    if not isinstance(value, dict):
        return live
    updated = dict(live) if isinstance(live, dict) else {}
    for lang, text in value.items():
        if is_filled(text):
            updated[lang] = text
    return updated if updated else live


def _long_form_update(live: Any, value: Any) -> Any:
    if not isinstance(value, dict):
        return live
    updated = dict(live) if isinstance(live, dict) else {}
    fallback = next((doc for doc in updated.values() if is_document(doc)), None)
    for lang, text in value.items():
        if not is_filled(text):
            continue
        original = updated.get(lang) if is_document(updated.get(lang)) else None
        if original is not None and _same_text(original, text):
            continue
        updated[lang] = from_text(text, original or fallback)
    return updated if updated else live


def _same_text(document: dict[str, Any], text: str) -> bool:
    rendered = to_text(document) or ""
    return text.strip() in (rendered, html.unescape(rendered))
