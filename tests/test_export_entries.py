import json
import sys
from datetime import datetime, timezone

import pytest

import locsync.export_entries as export_entries
from locsync.contentful import Tag, link
from locsync.exporter import GraphWalker
from locsync.schema import default_registry


def test_export_filename_uses_english_title():
    node = default_registry().require("storeOffer")

    assert export_entries.export_filename(node, {"id": "o1", "fields": {"title": {"en": "Summer Sale!"}}}) == (
        "storeOffer-summer-sale-o1.json"
    )
    assert export_entries.export_filename(node, {"id": "o1", "fields": {"title": {"en": ""}}}) == "storeOffer-o1.json"


def test_english_title_falls_back_to_name():
    assert export_entries.english_title({"name": {"en": "Badge"}}) == "Badge"
    assert export_entries.english_title({"title": {"de": "Titel"}}) is None


def test_tag_export_filename():
    now = datetime(2024, 5, 1, 12, 30, 5, tzinfo=timezone.utc)

    assert export_entries.tag_export_filename("toLocalize", now) == "exported-toLocalize-2024-05-01T12-30-05.json"


def test_list_candidates_queries_by_type(make_client, make_entry, limiter):
    client = make_client(make_entry("o1", "storeOffer"), make_entry("r1", "resource"))
    node = default_registry().require("storeOffer")

    entries = export_entries.list_candidates(client, node, limiter)

    assert [e.id for e in entries] == ["o1"]
    query = client.requests[0][1]
    assert query["limit"] == export_entries.SELECTION_LIMIT
    assert query["order"] == "-sys.updatedAt"


def test_export_tagged_walks_every_tagged_entry(make_client, make_entry):
    client = make_client(
        make_entry("rs1", "resourceSet", {"resources": {"en": [link("r1")]}}, tags=["toLocalize"]),
        make_entry("r1", "resource", {"val": {"en": "Hi"}}),
        make_entry("t1", "textBlock", {"title": {"en": "Block"}}, tags=["toLocalize"]),
        tags=[Tag("toLocalize", "toLocalize")],
    )
    walker = GraphWalker(client, default_registry())

    documents, errors = export_entries.export_tagged(walker, client, "toLocalize")

    assert errors == 0
    assert [d["id"] for d in documents] == ["rs1", "t1"]
    assert documents[0]["fields"]["resources"]["en"][0]["fields"]["val"]["en"] == "Hi"


def _set_env(monkeypatch):
    monkeypatch.setenv("CONTENTFUL_MANAGEMENT_TOKEN", "token")
    monkeypatch.setenv("CONTENTFUL_SPACE_ID", "space")
    monkeypatch.delenv("LOCSYNC_SCHEMA_PATH", raising=False)
    monkeypatch.delenv("LOCSYNC_LOG_FILE", raising=False)


def test_main_lists_types(monkeypatch, capsys):
    _set_env(monkeypatch)
    monkeypatch.setattr(sys, "argv", ["locsync-export", "--list-types"])

    export_entries.main()

    out = capsys.readouterr().out
    assert "storeOffer\tStore Offer" in out
    assert "resourceSet\tResource Set" in out


def test_main_requires_type_or_tag(monkeypatch):
    _set_env(monkeypatch)
    monkeypatch.setattr(sys, "argv", ["locsync-export"])

    with pytest.raises(SystemExit):
        export_entries.main()


def test_main_exports_single_entry(monkeypatch, tmp_path, make_client, make_entry):
    _set_env(monkeypatch)
    client = make_client(make_entry("t1", "textBlock", {"title": {"en": "Welcome Home"}}))
    monkeypatch.setattr(export_entries.ContentfulClient, "from_config", classmethod(lambda cls, cfg: client))
    monkeypatch.setattr(
        sys,
        "argv",
        ["locsync-export", "--type", "textBlock", "--id", "t1", "--output-dir", str(tmp_path)],
    )

    export_entries.main()

    written = json.loads((tmp_path / "textBlock-welcome-home-t1.json").read_text(encoding="utf-8"))
    assert written["id"] == "t1"
    assert written["fields"]["title"]["en"] == "Welcome Home"
    assert written["fields"]["title"]["de"] == ""
