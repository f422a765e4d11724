from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping


log = logging.getLogger("locsync.schema")

SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "de", "es", "fr", "ja", "ko", "ru", "zh")


class SchemaError(RuntimeError):
    pass


class UnknownContentType(SchemaError):
    pass


class FieldKind(str, Enum):
    SCALAR = "scalar"
    LOCALIZED_TEXT = "localized_text"
    LONG_FORM = "long_form"
    REFERENCE = "reference"
    REFERENCE_ARRAY = "reference_array"


@dataclass(frozen=True)
class Reference:
    target_type: str
    many: bool = False

    @property
    def kind(self) -> FieldKind:
        return FieldKind.REFERENCE_ARRAY if self.many else FieldKind.REFERENCE


@dataclass(frozen=True)
class SchemaNode:
    id: str
    fields: tuple[str, ...] = ()
    long_form_fields: frozenset[str] = frozenset()
    scalar_fields: frozenset[str] = frozenset()
    references: Mapping[str, Reference] = field(default_factory=dict)
    name: str | None = None

    def kind_of(self, field_name: str) -> FieldKind | None:
        if field_name in self.references:
            return self.references[field_name].kind
        if field_name not in self.fields:
            return None
        if field_name in self.long_form_fields:
            return FieldKind.LONG_FORM
        if field_name in self.scalar_fields:
            return FieldKind.SCALAR
        return FieldKind.LOCALIZED_TEXT

    def localized_fields(self) -> tuple[str, ...]:
        return tuple(f for f in self.fields if f not in self.scalar_fields)


class SchemaRegistry:
    """Static description of the exportable content types.

    Nodes refer to each other by type id, so a type may reference itself
    (directly or through other types) without building an infinite structure.
    """

    def __init__(self, nodes: Iterable[SchemaNode], roots: Iterable[str]) -> None:
        self._nodes: dict[str, SchemaNode] = {}
        for node in nodes:
            if node.id in self._nodes:
                raise SchemaError(f"duplicate content type: {node.id}")
            self._nodes[node.id] = node
        self._roots = tuple(roots)
        for root in self._roots:
            if root not in self._nodes:
                raise SchemaError(f"root content type is not declared: {root}")
        for node in self._nodes.values():
            for ref_field, ref in node.references.items():
                if ref.target_type not in self._nodes:
                    raise SchemaError(
                        f"reference {node.id}.{ref_field} targets undeclared type {ref.target_type}"
                    )

    @classmethod
    def from_dict(cls, declarations: Mapping[str, Mapping[str, Any]]) -> "SchemaRegistry":
        collected: dict[str, SchemaNode] = {}
        for type_id, decl in declarations.items():
            _collect_node(type_id, decl, collected)
        return cls(collected.values(), roots=list(declarations.keys()))

    def get(self, type_id: str) -> SchemaNode | None:
        return self._nodes.get(type_id)

    def require(self, type_id: str) -> SchemaNode:
        node = self._nodes.get(type_id)
        if node is None:
            raise UnknownContentType(f"Unknown content type: {type_id}")
        return node

    def target_of(self, reference: Reference) -> SchemaNode:
        return self.require(reference.target_type)

    def roots(self) -> list[SchemaNode]:
        return [self._nodes[type_id] for type_id in self._roots]

    def all_reachable_type_ids(self, roots: Iterable[str] | None = None) -> set[str]:
        pending = list(self._roots if roots is None else roots)
        seen: set[str] = set()
        while pending:
            type_id = pending.pop()
            if type_id in seen:
                continue
            seen.add(type_id)
            node = self._nodes.get(type_id)
            if node is None:
                continue
            for ref in node.references.values():
                if ref.target_type not in seen:
                    pending.append(ref.target_type)
        return seen

    def display_name(self, type_id: str) -> str:
        node = self._nodes.get(type_id)
        if node is not None and node.name:
            return node.name
        return type_id


def _collect_node(type_id: str, decl: Mapping[str, Any], collected: dict[str, SchemaNode]) -> None:
    fields = tuple(str(f) for f in decl.get("fields") or ())
    references: dict[str, Reference] = {}
    nested: list[tuple[str, Mapping[str, Any]]] = []
    for ref_field, ref_decl in (decl.get("references") or {}).items():
        target = ref_decl.get("type")
        if not target:
            raise SchemaError(f"reference {type_id}.{ref_field} has no target type")
        references[str(ref_field)] = Reference(str(target), many=bool(ref_decl.get("many", False)))
        if "fields" in ref_decl or "references" in ref_decl:
            nested.append((str(target), ref_decl))

    plain = tuple(f for f in fields if f not in references)
    long_form = frozenset(str(f) for f in decl.get("longFormFields") or decl.get("richTextFields") or ())
    scalar = frozenset(str(f) for f in decl.get("scalarFields") or ())
    unknown = (long_form | scalar) - set(plain)
    if unknown:
        raise SchemaError(f"{type_id}: long-form/scalar fields not declared: {sorted(unknown)}")

    node = SchemaNode(
        id=type_id,
        fields=plain,
        long_form_fields=long_form,
        scalar_fields=scalar,
        references=references,
        name=decl.get("name"),
    )
    existing = collected.get(type_id)
    if existing is not None:
        if _shape(existing) != _shape(node):
            raise SchemaError(f"conflicting declarations for content type: {type_id}")
        if node.name and not existing.name:
            collected[type_id] = node
        return
    collected[type_id] = node
    for target, ref_decl in nested:
        _collect_node(target, ref_decl, collected)


def _shape(node: SchemaNode) -> tuple:
    return (
        node.fields,
        node.long_form_fields,
        node.scalar_fields,
        tuple(sorted(node.references.items())),
    )


# Reference fields are listed in "fields" as well so the declaration order is
# the export order; the registry splits them out.
CONTENT_TYPES: dict[str, dict[str, Any]] = {
    "storeOffer": {
        "name": "Store Offer",
        "fields": ["title", "description", "badge", "offerDetail"],
        "longFormFields": ["description"],
        "references": {
            "badge": {"type": "storeBadge", "name": "Store Badge", "fields": ["text"]},
            "offerDetail": {
                "type": "storeOfferDetails",
                "name": "Store Offer Details",
                "fields": ["title", "description", "sections"],
                "longFormFields": ["description"],
                "references": {
                    "sections": {
                        "type": "storeOfferSection",
                        "many": True,
                        "name": "Store Offer Section",
                        "fields": ["title", "description", "items"],
                        "longFormFields": ["description"],
                        "references": {
                            "items": {
                                "type": "storeOfferContent",
                                "many": True,
                                "name": "Store Offer Content",
                                "fields": ["title", "description"],
                                "longFormFields": ["description"],
                            }
                        },
                    }
                },
            },
        },
    },
    "resourceSet": {
        "name": "Resource Set",
        "fields": ["resources"],
        "references": {
            "resources": {
                "type": "resource",
                "many": True,
                "name": "Resource",
                "fields": ["val"],
            }
        },
    },
    "textBlock": {
        "name": "Text Block",
        "fields": ["title", "body", "children"],
        "longFormFields": ["body"],
        "references": {
            "children": {"type": "textBlock", "many": True},
        },
    },
}


def default_registry() -> SchemaRegistry:
    return SchemaRegistry.from_dict(CONTENT_TYPES)


def load_registry(path: str | None = None) -> SchemaRegistry:
    if not path:
        return default_registry()
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SchemaError(f"schema file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise SchemaError(f"schema file is not valid JSON: {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaError("schema file must contain a JSON object of content types")
    log.info("loaded %s content types from %s", len(data), path)
    return SchemaRegistry.from_dict(data)
