from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any


log = logging.getLogger("locsync.translation_file")


class TranslationFileError(RuntimeError):
    pass


SPACE_RE = re.compile("[\u00a0\u2000-\u200a\u202f\u205f]")
ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\u2060\ufeff]")
SINGLE_QUOTES = str.maketrans({"\u2018": "'", "\u2019": "'", "\u201a": "'", "\u201b": "'", "\u2032": "'"})
DOUBLE_QUOTES = str.maketrans({"\u201c": '"', "\u201d": '"', "\u201e": '"', "\u201f": '"', "\u2033": '"'})
DASHES = str.maketrans({"\u2010": "-", "\u2011": "-", "\u2012": "-", "\u2013": "-", "\u2014": "-", "\u2015": "-"})


def sanitize_text(text: str, quotes: bool = True) -> str:
    text = SPACE_RE.sub(" ", text)
    text = ZERO_WIDTH_RE.sub("", text)
    text = text.translate(SINGLE_QUOTES).translate(DASHES)
    if quotes:
        text = text.translate(DOUBLE_QUOTES)
    return text


def _sanitize_values(value: Any) -> Any:
    if isinstance(value, str):
        return value.translate(DOUBLE_QUOTES)
    if isinstance(value, list):
        return [_sanitize_values(v) for v in value]
    if isinstance(value, dict):
        return {k: _sanitize_values(v) for k, v in value.items()}
    return value


def parse_documents(raw: str) -> list[dict[str, Any]]:
    # first pass: smart double quotes are string content; second pass: they
    # replaced the JSON delimiters
    try:
        data = json.loads(sanitize_text(raw, quotes=False))
    except json.JSONDecodeError:
        try:
            data = json.loads(sanitize_text(raw))
        except json.JSONDecodeError as exc:
            raise TranslationFileError(f"translation file is not valid JSON: {exc}") from exc
    data = _sanitize_values(data)
    documents = data if isinstance(data, list) else [data]
    for idx, doc in enumerate(documents):
        if not isinstance(doc, dict) or not doc.get("id") or not doc.get("contentType"):
            raise TranslationFileError(f"document #{idx} needs 'id' and 'contentType'")
        if not isinstance(doc.get("fields", {}), dict):
            raise TranslationFileError(f"document {doc['id']}: 'fields' must be an object")
    return documents


def load_documents(path: str | Path) -> list[dict[str, Any]]:
    file_path = Path(path).resolve()
    if not file_path.exists():
        raise TranslationFileError(f"File not found: {file_path}")
    raw = file_path.read_text(encoding="utf-8")
    documents = parse_documents(raw)
    log.info("read %s documents from %s", len(documents), file_path)
    return documents


def write_documents(path: str | Path, data: Any) -> Path:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return file_path


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")
