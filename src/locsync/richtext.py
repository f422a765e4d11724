from __future__ import annotations

import copy
import re
from typing import Any

from markdown_it import MarkdownIt


# Embedded entries and assets appear in exported text as [ENTRY:id] / [ASSET:id].
PLACEHOLDER_RE = re.compile(r"\[(ENTRY|ASSET):([^\]\s]+)\]")

ENTRY_EMBEDS = ("embedded-entry-inline", "embedded-entry-block")
ASSET_EMBEDS = ("embedded-asset-block",)
BLOCK_EMBEDS = ("embedded-entry-block", "embedded-asset-block")
LISTS = ("unordered-list", "ordered-list")

MARK_WRAPPERS = {"bold": "**", "italic": "*", "code": "`"}

_BLOCK_OPEN = {
    "paragraph_open": "paragraph",
    "bullet_list_open": "unordered-list",
    "ordered_list_open": "ordered-list",
    "list_item_open": "list-item",
    "blockquote_open": "blockquote",
}


def is_document(value: Any) -> bool:
    return isinstance(value, dict) and value.get("nodeType") == "document"


# --- rich text -> markdown ---------------------------------------------------


def to_text(document: dict[str, Any] | None) -> str | None:
    if not document:
        return None
    blocks = [_render_block(node) for node in document.get("content") or []]
    text = "\n\n".join(b for b in blocks if b)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def localized_to_text(value: Any) -> Any:
    if value is None:
        return None
    if is_document(value):
        return to_text(value)
    if isinstance(value, dict):
        return {lang: to_text(doc) if is_document(doc) else doc for lang, doc in value.items()}
    return value


def _target_id(node: dict[str, Any]) -> str:
    return str(((node.get("data") or {}).get("target") or {}).get("sys", {}).get("id", ""))


def _render_block(node: dict[str, Any]) -> str:
    node_type = node.get("nodeType", "")
    content = node.get("content") or []
    if node_type == "paragraph":
        return _render_inline(content)
    if node_type.startswith("heading-"):
        level = int(node_type.split("-", 1)[1])
        return f"{'#' * level} {_render_inline(content)}"
    if node_type in LISTS:
        lines = []
        for idx, item in enumerate(content, start=1):
            bullet = f"{idx}." if node_type == "ordered-list" else "-"
            lines.append(_render_list_item(item, bullet))
        return "\n".join(lines)
    if node_type == "blockquote":
        inner = "\n\n".join(_render_block(child) for child in content)
        return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))
    if node_type == "hr":
        return "---"
    if node_type == "embedded-entry-block":
        return f"[ENTRY:{_target_id(node)}]"
    if node_type == "embedded-asset-block":
        return f"[ASSET:{_target_id(node)}]"
    if node_type in ("text", "hyperlink", "embedded-entry-inline"):
        return _render_inline([node])
    # tables and other containers: render their children as separate blocks
    return "\n\n".join(filter(None, (_render_block(child) for child in content)))


def _render_list_item(item: dict[str, Any], bullet: str) -> str:
    # Child blocks sit at the item's content column; a nested list follows
    # its parent line directly, other blocks are separated by a blank line.
    body = ""
    for child in item.get("content") or []:
        rendered = _render_block(child)
        if not rendered:
            continue
        if body:
            body += ("\n" if child.get("nodeType") in LISTS else "\n\n") + rendered
        else:
            body = rendered
    if not body:
        return bullet
    pad = " " * (len(bullet) + 1)
    first, *rest = body.split("\n")
    lines = [f"{bullet} {first}"]
    lines.extend(f"{pad}{line}" if line else "" for line in rest)
    return "\n".join(lines)


def _render_inline(nodes: list[dict[str, Any]]) -> str:
    out: list[str] = []
    for node in nodes:
        node_type = node.get("nodeType")
        if node_type == "text":
            out.append(_render_text(node))
        elif node_type == "hyperlink":
            uri = (node.get("data") or {}).get("uri", "")
            out.append(f"[{_render_inline(node.get('content') or [])}]({uri})")
        elif node_type == "embedded-entry-inline":
            out.append(f"[ENTRY:{_target_id(node)}]")
        elif node_type in BLOCK_EMBEDS:
            out.append(_render_block(node))
        else:
            out.append(_render_inline(node.get("content") or []))
    return "".join(out)


def _render_text(node: dict[str, Any]) -> str:
    value = str(node.get("value") or "")
    if not value.strip():
        return value
    for mark in node.get("marks") or []:
        wrapper = MARK_WRAPPERS.get(mark.get("type"))
        if wrapper:
            value = f"{wrapper}{value}{wrapper}"
    return value


# --- markdown -> rich text ---------------------------------------------------


def extract_embedded_entries(document: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    return _extract(document, ENTRY_EMBEDS)


def extract_embedded_assets(document: dict[str, Any] | None) -> dict[str, dict[str, Any]]:
    return _extract(document, ASSET_EMBEDS)


def _extract(document: dict[str, Any] | None, node_types: tuple[str, ...]) -> dict[str, dict[str, Any]]:
    found: dict[str, dict[str, Any]] = {}
    if not document:
        return found

    def _walk(node: dict[str, Any]) -> None:
        if node.get("nodeType") in node_types:
            target = _target_id(node)
            if target:
                found[target] = node
        for child in node.get("content") or []:
            _walk(child)

    for child in document.get("content") or []:
        _walk(child)
    return found


def from_text(markdown: str | None, original: dict[str, Any] | None = None) -> dict[str, Any] | None:
    """Convert translated markdown back into a rich text document.

    ``[ENTRY:id]`` / ``[ASSET:id]`` placeholders whose id is embedded in
    ``original`` are replaced by a copy of the original embed node; any other
    placeholder is kept as literal text.
    """
    if not markdown:
        return None
    embeds = {
        "ENTRY": extract_embedded_entries(original),
        "ASSET": extract_embedded_assets(original),
    }
    tokens = MarkdownIt("commonmark").parse(markdown)
    document: dict[str, Any] = {"nodeType": "document", "data": {}, "content": []}
    stack: list[dict[str, Any]] = [document]
    for tok in tokens:
        if tok.type in _BLOCK_OPEN or tok.type == "heading_open":
            node_type = _BLOCK_OPEN.get(tok.type) or f"heading-{tok.tag[1:]}"
            node = _block(node_type)
            stack[-1]["content"].append(node)
            stack.append(node)
        elif tok.type.endswith("_close"):
            if len(stack) > 1:
                stack.pop()
        elif tok.type == "inline":
            stack[-1]["content"].extend(_inline_nodes(tok.children or [], embeds))
        elif tok.type == "hr":
            stack[-1]["content"].append(_block("hr"))
        elif tok.type in ("fence", "code_block"):
            para = _block("paragraph")
            para["content"].append(_text(tok.content.rstrip("\n"), ["code"]))
            stack[-1]["content"].append(para)
        elif tok.type == "html_block":
            para = _block("paragraph")
            para["content"].append(_text(tok.content.strip()))
            stack[-1]["content"].append(para)
    document["content"] = _lift_block_embeds(document["content"])
    return document


def _block(node_type: str) -> dict[str, Any]:
    return {"nodeType": node_type, "data": {}, "content": []}


def _text(value: str, marks: list[str] | None = None) -> dict[str, Any]:
    return {
        "nodeType": "text",
        "value": value,
        "marks": [{"type": m} for m in marks or []],
        "data": {},
    }


def _inline_nodes(children: list[Any], embeds: dict[str, dict[str, dict[str, Any]]]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    marks: list[str] = []
    link: dict[str, Any] | None = None
    pending: list[str] = []

    def emit(node: dict[str, Any]) -> None:
        if link is not None and node["nodeType"] == "text":
            link["content"].append(node)
        else:
            out.append(node)

    def flush() -> None:
        if not pending:
            return
        for node in _split_placeholders("".join(pending), list(marks), embeds):
            emit(node)
        pending.clear()

    for tok in children:
        if tok.type == "text":
            pending.append(tok.content)
            continue
        flush()
        if tok.type in ("softbreak", "hardbreak"):
            emit(_text("\n", marks))
        elif tok.type == "strong_open":
            marks.append("bold")
        elif tok.type == "em_open":
            marks.append("italic")
        elif tok.type in ("strong_close", "em_close"):
            mark = "bold" if tok.type == "strong_close" else "italic"
            if mark in marks:
                marks.remove(mark)
        elif tok.type == "code_inline":
            emit(_text(tok.content, marks + ["code"]))
        elif tok.type == "link_open":
            link = {"nodeType": "hyperlink", "data": {"uri": tok.attrGet("href") or ""}, "content": []}
        elif tok.type == "link_close":
            if link is not None:
                if not link["content"]:
                    link["content"].append(_text(""))
                out.append(link)
            link = None
        elif tok.type in ("html_inline", "image"):
            emit(_text(tok.content))
    flush()
    return out


def _split_placeholders(
    text: str,
    marks: list[str],
    embeds: dict[str, dict[str, dict[str, Any]]],
) -> list[dict[str, Any]]:
    nodes: list[dict[str, Any]] = []
    last = 0
    for match in PLACEHOLDER_RE.finditer(text):
        original = embeds.get(match.group(1), {}).get(match.group(2))
        if original is None:
            continue
        if match.start() > last:
            nodes.append(_text(text[last : match.start()], marks))
        nodes.append(copy.deepcopy(original))
        last = match.end()
    if last < len(text):
        nodes.append(_text(text[last:], marks))
    return nodes


def _lift_block_embeds(blocks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    lifted: list[dict[str, Any]] = []
    for block in blocks:
        if block.get("nodeType") != "paragraph":
            if block.get("content") and block.get("nodeType") not in BLOCK_EMBEDS:
                block["content"] = _lift_block_embeds(block["content"])
            lifted.append(block)
            continue
        current: list[dict[str, Any]] = []
        for node in block["content"]:
            if node.get("nodeType") in BLOCK_EMBEDS:
                if _has_text(current):
                    lifted.append({**_block("paragraph"), "content": current})
                current = []
                lifted.append(node)
            else:
                current.append(node)
        if _has_text(current) or not block["content"]:
            lifted.append({**_block("paragraph"), "content": current or [_text("")]})
    return lifted


def _has_text(nodes: list[dict[str, Any]]) -> bool:
    for node in nodes:
        if node.get("nodeType") != "text" or str(node.get("value") or "").strip():
            return True
    return False
