from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import requests

from .contentful import ContentfulClient, ContentfulError, Entry
from .ratelimit import RateLimiter, call
from .schema import SchemaNode, SchemaRegistry


log = logging.getLogger("locsync.tags")

TO_LOCALIZE = "toLocalize"
PAGE_SIZE = 1000

_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class TaggedEntry:
    entry: Entry
    node: SchemaNode


def _normalize(name: str) -> str:
    return name.lower().strip()


def get_tag_id_by_name(
    client: ContentfulClient,
    name_or_id: str,
    limiter: RateLimiter | None = None,
) -> str | None:
    try:
        tags = call(limiter, client.get_tags)
    except (ContentfulError, requests.RequestException) as exc:
        log.warning("Failed to fetch tag %r: %s", name_or_id, exc)
        return None
    log.debug("found %s tags: %s", len(tags), [t.name for t in tags])

    for tag in tags:
        if tag.id == name_or_id:
            return tag.id
    wanted = _normalize(name_or_id)
    for tag in tags:
        name = _normalize(tag.name)
        if name == wanted or _WS_RE.sub("", name) == _WS_RE.sub("", wanted):
            log.debug("tag %r resolved to %r (%s)", name_or_id, tag.name, tag.id)
            return tag.id
    log.info("tag %r not found among %s tags", name_or_id, len(tags))
    return None


def fetch_entries_by_tag(
    client: ContentfulClient,
    tag_name: str,
    registry: SchemaRegistry,
    limiter: RateLimiter | None = None,
) -> list[TaggedEntry]:
    tag_id = get_tag_id_by_name(client, tag_name, limiter)
    if not tag_id:
        return []
    supported = registry.all_reachable_type_ids()
    if not supported:
        return []

    found: list[TaggedEntry] = []
    skip = 0
    while True:
        query = {
            "metadata.tags.sys.id[in]": tag_id,
            "limit": PAGE_SIZE,
            "skip": skip,
            "order": "-sys.updatedAt",
        }
        try:
            page = call(limiter, client.get_entries, query)
        except (ContentfulError, requests.RequestException) as exc:
            log.warning("Failed to fetch entries with tag %r: %s", tag_name, exc)
            break
        log.info("tag %s: %s entries at skip=%s (total %s)", tag_id, len(page.items), skip, page.total)
        for entry in page.items:
            if entry.content_type not in supported:
                log.debug("skipping %s: content type %s not supported", entry.id, entry.content_type)
                continue
            node = registry.get(entry.content_type) or SchemaNode(
                id=entry.content_type,
                name=registry.display_name(entry.content_type),
            )
            found.append(TaggedEntry(entry=entry, node=node))
        skip += len(page.items)
        if len(page.items) < PAGE_SIZE or skip >= page.total:
            break
    return found


def remove_tag_from_entry(
    client: ContentfulClient,
    entry_id: str,
    tag_name: str,
    limiter: RateLimiter | None = None,
) -> bool:
    try:
        entry = call(limiter, client.get_entry, entry_id)
        tag_id = get_tag_id_by_name(client, tag_name, limiter)
        if not tag_id:
            log.warning("Tag %r not found, cannot remove from entry %s", tag_name, entry_id)
            return False
        remaining = [t for t in entry.tags if t != tag_id]
        if len(remaining) == len(entry.tags):
            return False
        entry.tags = remaining
        call(limiter, client.update_entry, entry)
        return True
    except (ContentfulError, requests.RequestException) as exc:
        log.warning("Failed to remove tag %r from entry %s: %s", tag_name, entry_id, exc)
        return False
