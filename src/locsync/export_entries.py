from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import Config, load_config
from .contentful import ContentfulClient, Entry
from .exporter import ExportOptions, GraphWalker
from .logging import attach_file_logging, configure_logging
from .ratelimit import RateLimiter, call
from .schema import SchemaNode, load_registry
from .tags import fetch_entries_by_tag
from .translation_file import slugify, write_documents


log = logging.getLogger("locsync.export_entries")

SELECTION_LIMIT = 100


def english_title(fields: dict[str, Any]) -> str | None:
    for name in ("title", "name"):
        value = fields.get(name)
        if isinstance(value, dict) and isinstance(value.get("en"), str) and value["en"].strip():
            return value["en"]
    return None


def export_filename(node: SchemaNode, document: dict[str, Any]) -> str:
    entry_id = document["id"]
    title = english_title(document.get("fields") or {})
    slug = slugify(title) if title else ""
    if slug:
        return f"{node.id}-{slug}-{entry_id}.json"
    return f"{node.id}-{entry_id}.json"


def tag_export_filename(tag_name: str, now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
    return f"exported-{tag_name}-{stamp}.json"


def list_candidates(client: ContentfulClient, node: SchemaNode, limiter: RateLimiter | None) -> list[Entry]:
    page = call(
        limiter,
        client.get_entries,
        {"content_type": node.id, "limit": SELECTION_LIMIT, "order": "-sys.updatedAt"},
    )
    return page.items


def export_tagged(
    walker: GraphWalker,
    client: ContentfulClient,
    tag_name: str,
) -> tuple[list[dict[str, Any]], int]:
    tagged = fetch_entries_by_tag(client, tag_name, walker.registry, walker.limiter)
    documents: list[dict[str, Any]] = []
    errors = 0
    for idx, item in enumerate(tagged, start=1):
        log.info("exporting %s/%s: %s (%s)", idx, len(tagged), item.entry.id, item.node.id)
        try:
            documents.append(walker.walk(item.entry, item.node))
        except Exception as exc:
            errors += 1
            log.error("export failed for %s: %s", item.entry.id, exc)
    return documents, errors


def _build(cfg: Config) -> tuple[ContentfulClient, RateLimiter]:
    client = ContentfulClient.from_config(cfg)
    return client, RateLimiter(cfg.min_interval_seconds)


def main() -> None:
    parser = argparse.ArgumentParser(description="Export content for translation")
    parser.add_argument("-t", "--type", help="content type to export")
    parser.add_argument("-i", "--id", help="entry id to export; omit to list candidates")
    parser.add_argument("--tag", action="store_true", help="export every entry carrying the localization tag")
    parser.add_argument("--output-dir", default=None, help="defaults to LOCSYNC_OUTPUT_DIR")
    parser.add_argument("--list-types", action="store_true", help="print exportable content types")
    args = parser.parse_args()

    configure_logging()
    cfg = load_config()
    if cfg.log_file:
        attach_file_logging(cfg.log_file)
    registry = load_registry(cfg.schema_path)

    if args.list_types:
        for node in registry.roots():
            print(f"{node.id}\t{registry.display_name(node.id)}")
        return
    if not args.tag and not args.type:
        raise SystemExit("--type or --tag is required")

    client, limiter = _build(cfg)
    walker = GraphWalker(client, registry, limiter, ExportOptions())
    output_dir = Path(args.output_dir or cfg.output_dir)

    if args.tag:
        documents, errors = export_tagged(walker, client, cfg.tag_name)
        if not documents:
            raise SystemExit(f'No entries found with "{cfg.tag_name}" tag')
        path = write_documents(output_dir / tag_export_filename(cfg.tag_name), documents)
        print(f"summary exported={len(documents)} errors={errors}")
        print(str(path))
        return

    node = registry.require(args.type)
    if not args.id:
        entries = list_candidates(client, node, limiter)
        if not entries:
            raise SystemExit(f"No {registry.display_name(node.id)} entries found")
        for entry in entries:
            updated = (entry.updated_at or "")[:10]
            print(f"{entry.id} - {english_title(entry.fields) or 'No title'} (updated: {updated})")
        print("re-run with --id to export one of these entries")
        return

    document = walker.fetch_document(args.id, node)
    path = write_documents(output_dir / export_filename(node, document), document)
    print(str(path))


if __name__ == "__main__":
    main()
