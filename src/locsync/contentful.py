from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import requests

from .config import Config


log = logging.getLogger("locsync.contentful")

CONTENT_TYPE_HEADER = "application/vnd.contentful.management.v1+json"
MAX_ATTEMPTS = 5


class ContentfulError(RuntimeError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class EntryNotFound(ContentfulError):
    pass


def link(entry_id: str, link_type: str = "Entry") -> dict[str, Any]:
    return {"sys": {"type": "Link", "linkType": link_type, "id": entry_id}}


def link_id(value: Any, link_type: str = "Entry") -> str | None:
    if not isinstance(value, dict):
        return None
    sys = value.get("sys")
    if not isinstance(sys, dict):
        return None
    if sys.get("type") != "Link" or sys.get("linkType") != link_type:
        return None
    entry_id = sys.get("id")
    return str(entry_id) if entry_id else None


@dataclass
class Entry:
    id: str
    content_type: str
    version: int = 0
    fields: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    updated_at: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Entry":
        sys = payload.get("sys") or {}
        content_type = (((sys.get("contentType") or {}).get("sys")) or {}).get("id", "")
        tags = [
            str(tag["sys"]["id"])
            for tag in (payload.get("metadata") or {}).get("tags") or []
            if tag.get("sys", {}).get("id")
        ]
        return cls(
            id=str(sys.get("id", "")),
            content_type=str(content_type),
            version=int(sys.get("version") or 0),
            fields=dict(payload.get("fields") or {}),
            tags=tags,
            updated_at=sys.get("updatedAt"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "fields": self.fields,
            "metadata": {"tags": [link(tag_id, "Tag") for tag_id in self.tags]},
        }


@dataclass(frozen=True)
class EntryPage:
    items: list[Entry]
    total: int
    skip: int = 0
    limit: int = 100


@dataclass(frozen=True)
class Tag:
    id: str
    name: str


@dataclass
class ContentfulClient:
    base_url: str
    access_token: str
    session: requests.Session
    user_agent: str = "locsync/0.1"

    @classmethod
    def for_environment(
        cls,
        api_url: str,
        space_id: str,
        environment_id: str,
        access_token: str,
        session: requests.Session,
        user_agent: str = "locsync/0.1",
    ) -> "ContentfulClient":
        base = f"{api_url.rstrip('/')}/spaces/{space_id}/environments/{environment_id}"
        return cls(base, access_token, session, user_agent)

    @classmethod
    def from_config(cls, cfg: Config, session: requests.Session | None = None) -> "ContentfulClient":
        return cls.for_environment(
            cfg.api_url,
            cfg.space_id,
            cfg.environment_id,
            cfg.access_token,
            session or requests.Session(),
            user_agent=cfg.user_agent,
        )

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": CONTENT_TYPE_HEADER,
            "User-Agent": self.user_agent,
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        backoff = 1.0
        for attempt in range(MAX_ATTEMPTS):
            if method == "GET":
                resp = self.session.get(url, params=params, headers=self._headers(headers), timeout=30)
            else:
                resp = self.session.put(url, json=body, headers=self._headers(headers), timeout=30)
            status = int(resp.status_code)
            if status == 429 and attempt < MAX_ATTEMPTS - 1:
                reset = (resp.headers or {}).get("X-Contentful-RateLimit-Reset")
                wait = float(reset) if reset else backoff
                log.warning("rate limited on %s %s; backing off %ss", method, path, wait)
                time.sleep(wait)
                backoff *= 2
                continue
            if status == 404:
                raise EntryNotFound(f"not found: {path}", status)
            if status >= 400:
                raise ContentfulError(f"Contentful API error {status} on {method} {path}: {_error_message(resp)}", status)
            return resp.json()
        raise ContentfulError("Contentful API error: exceeded retry attempts")

    def get_entry(self, entry_id: str) -> Entry:
        return Entry.from_payload(self._request("GET", f"/entries/{entry_id}"))

    def get_entries(self, query: dict[str, Any] | None = None) -> EntryPage:
        data = self._request("GET", "/entries", params=dict(query or {}))
        return EntryPage(
            items=[Entry.from_payload(item) for item in data.get("items", [])],
            total=int(data.get("total", 0)),
            skip=int(data.get("skip", 0)),
            limit=int(data.get("limit", 100)),
        )

    def get_tags(self) -> list[Tag]:
        data = self._request("GET", "/tags", params={"limit": 1000})
        return [
            Tag(id=str(item["sys"]["id"]), name=str(item.get("name") or ""))
            for item in data.get("items", [])
        ]

    def update_entry(self, entry: Entry) -> Entry:
        data = self._request(
            "PUT",
            f"/entries/{entry.id}",
            body=entry.to_payload(),
            headers={"X-Contentful-Version": str(entry.version)},
        )
        updated = Entry.from_payload(data)
        entry.version = updated.version or entry.version + 1
        return updated


def _error_message(resp: Any) -> str:
    try:
        data = resp.json()
    except ValueError:
        return str(getattr(resp, "text", ""))
    if isinstance(data, dict):
        return str(data.get("message") or (data.get("sys") or {}).get("id") or data)
    return str(data)
