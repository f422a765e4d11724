import copy

import pytest

from locsync.contentful import ContentfulError, Entry, EntryNotFound, EntryPage


class FakeClient:
    def __init__(self, entries=(), tags=()):
        self.entries = {entry.id: copy.deepcopy(entry) for entry in entries}
        self.tags = list(tags)
        self.requests = []
        self.updates = []
        self.fail_get = set()
        self.fail_update = set()
        self.fail_tags = False

    def get_entry(self, entry_id):
        self.requests.append(("get_entry", entry_id))
        if entry_id in self.fail_get:
            raise ContentfulError("server error", 500)
        if entry_id not in self.entries:
            raise EntryNotFound(f"not found: /entries/{entry_id}", 404)
        return copy.deepcopy(self.entries[entry_id])

    def get_entries(self, query=None):
        query = dict(query or {})
        self.requests.append(("get_entries", query))
        items = list(self.entries.values())
        if "content_type" in query:
            items = [e for e in items if e.content_type == query["content_type"]]
        if "metadata.tags.sys.id[in]" in query:
            items = [e for e in items if query["metadata.tags.sys.id[in]"] in e.tags]
        skip = int(query.get("skip", 0))
        limit = int(query.get("limit", 100))
        page = [copy.deepcopy(e) for e in items[skip : skip + limit]]
        return EntryPage(items=page, total=len(items), skip=skip, limit=limit)

    def get_tags(self):
        self.requests.append(("get_tags", None))
        if self.fail_tags:
            raise ContentfulError("tags unavailable", 503)
        return list(self.tags)

    def update_entry(self, entry):
        self.requests.append(("update_entry", entry.id))
        if entry.id in self.fail_update:
            raise ContentfulError("version mismatch", 409)
        self.updates.append(copy.deepcopy(entry))
        entry.version += 1
        self.entries[entry.id] = copy.deepcopy(entry)
        return copy.deepcopy(entry)


class CountingLimiter:
    def __init__(self):
        self.calls = 0

    def schedule(self, operation, *args, **kwargs):
        self.calls += 1
        return operation(*args, **kwargs)


def _entry(entry_id, content_type, fields=None, tags=(), version=1):
    return Entry(
        id=entry_id,
        content_type=content_type,
        version=version,
        fields=fields or {},
        tags=list(tags),
    )


@pytest.fixture
def make_entry():
    return _entry


@pytest.fixture
def make_client():
    def _make(*entries, tags=()):
        return FakeClient(entries, tags)

    return _make


@pytest.fixture
def limiter():
    return CountingLimiter()
