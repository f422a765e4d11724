from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from .contentful import ContentfulClient, ContentfulError, Entry, link_id
from .ratelimit import RateLimiter, call
from .richtext import localized_to_text
from .schema import SUPPORTED_LANGUAGES, FieldKind, Reference, SchemaNode, SchemaRegistry


log = logging.getLogger("locsync.exporter")


class TypeMismatch(RuntimeError):
    def __init__(self, entry_id: str, expected: str, found: str) -> None:
        super().__init__(f"Entry {entry_id} is not of content type '{expected}'. Found: {found}")
        self.entry_id = entry_id
        self.expected = expected
        self.found = found


@dataclass(frozen=True)
class ExportOptions:
    all_languages: bool = True
    decode_entities: bool = True
    use_rate_limit: bool = True


def make_document(entry_id: str, content_type: str, fields: dict[str, Any]) -> dict[str, Any]:
    return {"id": entry_id, "contentType": content_type, "fields": fields}


@dataclass
class GraphWalker:
    """Fetches an entry and everything reachable from it through the schema's
    reference fields, producing the flat document handed to translators."""

    client: ContentfulClient
    registry: SchemaRegistry
    limiter: RateLimiter | None = None
    options: ExportOptions = field(default_factory=ExportOptions)

    def _get_entry(self, entry_id: str) -> Entry:
        limiter = self.limiter if self.options.use_rate_limit else None
        return call(limiter, self.client.get_entry, entry_id)

    def fetch_document(self, entry_id: str, node: SchemaNode) -> dict[str, Any]:
        entry = self._get_entry(entry_id)
        return self.walk(entry, node)

    def walk(self, entry: Entry, node: SchemaNode) -> dict[str, Any]:
        return self._walk(entry, node, ())

    def _walk(self, entry: Entry, node: SchemaNode, ancestors: tuple[str, ...]) -> dict[str, Any]:
        if entry.content_type != node.id:
            raise TypeMismatch(entry.id, node.id, entry.content_type)
        fields = self.extract_fields(entry.fields, node, ancestors + (entry.id,))
        return make_document(entry.id, entry.content_type, fields)

    def extract_fields(
        self,
        fields: dict[str, Any],
        node: SchemaNode,
        ancestors: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for field_name in node.fields:
            value = fields.get(field_name)
            if value is None:
                continue
            kind = node.kind_of(field_name)
            if kind == FieldKind.SCALAR:
                result[field_name] = value
            elif kind == FieldKind.LONG_FORM:
                result[field_name] = self._localized(localized_to_text(value), decode=self.options.decode_entities)
            else:
                result[field_name] = self._localized(value, decode=False)

        for ref_field, ref in node.references.items():
            value = fields.get(ref_field)
            if not isinstance(value, dict):
                continue
            resolved = self._resolve_reference_field(ref_field, value, ref, ancestors)
            # unused optional slots stay out of the document
            if any(resolved.values()):
                result[ref_field] = resolved
        return result

    def _localized(self, value: Any, decode: bool) -> Any:
        if not isinstance(value, dict):
            if decode and isinstance(value, str):
                return html.unescape(value)
            return value
        if self.options.all_languages:
            out = {lang: value.get(lang) or "" for lang in SUPPORTED_LANGUAGES}
        else:
            out = {lang: text for lang, text in value.items() if text is not None}
        if decode:
            out = {lang: html.unescape(text) if isinstance(text, str) else text for lang, text in out.items()}
        return out

    def _resolve_reference_field(
        self,
        ref_field: str,
        value: dict[str, Any],
        ref: Reference,
        ancestors: tuple[str, ...],
    ) -> dict[str, Any]:
        target = self.registry.target_of(ref)
        resolved: dict[str, Any] = {}
        for locale, links in value.items():
            if isinstance(links, list):
                docs = [
                    doc
                    for doc in (self._resolve_link(ref_field, item, target, ancestors) for item in links)
                    if doc is not None
                ]
                if ref.many:
                    resolved[locale] = docs
                elif docs:
                    resolved[locale] = docs[0]
            else:
                doc = self._resolve_link(ref_field, links, target, ancestors)
                if doc is not None:
                    resolved[locale] = [doc] if ref.many else doc
        return resolved

    def _resolve_link(
        self,
        ref_field: str,
        value: Any,
        target: SchemaNode,
        ancestors: tuple[str, ...],
    ) -> dict[str, Any] | None:
        entry_id = link_id(value)
        if entry_id is None:
            return None
        if entry_id in ancestors:
            log.warning("reference cycle at %s=%s; not following", ref_field, entry_id)
            return None
        try:
            entry = self._get_entry(entry_id)
            return self._walk(entry, target, ancestors)
        except TypeMismatch as exc:
            log.debug("dropping reference %s=%s: %s", ref_field, entry_id, exc)
            return None
        except (ContentfulError, requests.RequestException) as exc:
            log.warning("Failed to fetch reference %s: %s", entry_id, exc)
            return None
