from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from typing import Any

from .config import load_config
from .contentful import ContentfulClient
from .exporter import ExportOptions, GraphWalker
from .logging import attach_file_logging, configure_logging
from .merge import is_complete, merge_fields
from .ratelimit import RateLimiter
from .schema import SchemaRegistry, load_registry
from .tags import TO_LOCALIZE, remove_tag_from_entry
from .translation_file import load_documents
from .writeback import WriteBack


log = logging.getLogger("locsync.import_translations")

# Live documents keep only the locales the entry actually has.
CURRENT_OPTIONS = ExportOptions(all_languages=False, decode_entities=True, use_rate_limit=True)


@dataclass
class ImportOutcome:
    entry_id: str
    content_type: str
    complete: bool
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    tag_removed: bool = False
    dry_run: bool = False


def import_document(
    document: dict[str, Any],
    client: ContentfulClient,
    registry: SchemaRegistry,
    limiter: RateLimiter | None = None,
    tag_name: str = TO_LOCALIZE,
    dry_run: bool = False,
) -> ImportOutcome:
    """Merge one translated document into the live entry tree.

    Raises on anything fatal for this entry (unknown content type, root fetch
    or type mismatch, root write). Callers importing a batch wrap each call.
    """
    entry_id = str(document["id"])
    node = registry.require(str(document["contentType"]))

    walker = GraphWalker(client, registry, limiter, CURRENT_OPTIONS)
    current = walker.fetch_document(entry_id, node)
    merged = merge_fields(current["fields"], document.get("fields") or {}, node, registry)
    complete = is_complete(merged, node, registry)

    outcome = ImportOutcome(entry_id=entry_id, content_type=node.id, complete=complete, dry_run=dry_run)
    if dry_run:
        log.info("DRY RUN %s complete=%s", entry_id, complete)
        return outcome

    result = WriteBack(client, registry, limiter).apply(entry_id, merged, node)
    outcome.updated = result.updated
    outcome.failed = result.failed

    if not complete:
        log.info("entry %s still needs localization; keeping %s tag", entry_id, tag_name)
    elif result.failed:
        log.warning("entry %s complete but %s references failed; keeping %s tag", entry_id, len(result.failed), tag_name)
    else:
        outcome.tag_removed = remove_tag_from_entry(client, entry_id, tag_name, limiter)
        if outcome.tag_removed:
            log.info("removed %s tag from %s", tag_name, entry_id)
    return outcome


def import_documents(
    documents: list[dict[str, Any]],
    client: ContentfulClient,
    registry: SchemaRegistry,
    limiter: RateLimiter | None = None,
    tag_name: str = TO_LOCALIZE,
    dry_run: bool = False,
) -> tuple[list[ImportOutcome], dict[str, str]]:
    outcomes: list[ImportOutcome] = []
    errors: dict[str, str] = {}
    for document in documents:
        entry_id = str(document.get("id"))
        try:
            outcomes.append(
                import_document(document, client, registry, limiter, tag_name=tag_name, dry_run=dry_run)
            )
        except Exception as exc:
            log.error("import failed for %s: %s", entry_id, exc)
            errors[entry_id] = str(exc)
    return outcomes, errors


def main() -> None:
    parser = argparse.ArgumentParser(description="Import translations")
    parser.add_argument("-f", "--file", required=True, help="translation JSON file")
    parser.add_argument("--dry-run", action="store_true", help="merge and report without writing")
    args = parser.parse_args()

    configure_logging()
    cfg = load_config()
    if cfg.log_file:
        attach_file_logging(cfg.log_file)
    registry = load_registry(cfg.schema_path)
    documents = load_documents(args.file)

    client = ContentfulClient.from_config(cfg)
    limiter = RateLimiter(cfg.min_interval_seconds)

    outcomes, errors = import_documents(
        documents, client, registry, limiter, tag_name=cfg.tag_name, dry_run=args.dry_run
    )
    for outcome in outcomes:
        status = "complete" if outcome.complete else "needs-localization"
        print(
            f"{outcome.entry_id} ({outcome.content_type}) {status} "
            f"updated={len(outcome.updated)} failed_refs={len(outcome.failed)} "
            f"tag_removed={outcome.tag_removed}"
        )
    for entry_id, message in errors.items():
        print(f"{entry_id} error: {message}")
    complete = sum(1 for o in outcomes if o.complete)
    print(
        f"summary documents={len(documents)} imported={len(outcomes)} "
        f"complete={complete} errors={len(errors)}"
    )
    if errors:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
