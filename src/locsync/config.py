from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Config:
    access_token: str
    space_id: str

    environment_id: str = "master"
    api_url: str = "https://api.contentful.com"
    user_agent: str = "locsync/0.1"

    min_interval_ms: int = 150
    tag_name: str = "toLocalize"
    schema_path: str | None = None
    output_dir: str = "."
    log_file: str | None = None

    @property
    def min_interval_seconds(self) -> float:
        return self.min_interval_ms / 1000.0


def load_config() -> Config:
    def req(name: str) -> str:
        value = os.getenv(name)
        if not value:
            raise RuntimeError(f"Missing required env var: {name}")
        return value

    def _load_interval() -> int:
        raw = os.getenv("LOCSYNC_MIN_INTERVAL_MS", "150")
        try:
            value = int(raw)
        except ValueError as exc:
            raise RuntimeError("LOCSYNC_MIN_INTERVAL_MS must be an integer") from exc
        if value < 0:
            raise RuntimeError("LOCSYNC_MIN_INTERVAL_MS must not be negative")
        return value

    cfg = Config(
        access_token=req("CONTENTFUL_MANAGEMENT_TOKEN"),
        space_id=req("CONTENTFUL_SPACE_ID"),
        environment_id=os.getenv("CONTENTFUL_ENVIRONMENT") or "master",
        api_url=os.getenv("CONTENTFUL_API_URL", "https://api.contentful.com").rstrip("/"),
        user_agent=os.getenv("LOCSYNC_USER_AGENT", "locsync/0.1"),
        min_interval_ms=_load_interval(),
        tag_name=os.getenv("LOCSYNC_TAG", "toLocalize").strip() or "toLocalize",
        schema_path=os.getenv("LOCSYNC_SCHEMA_PATH") or None,
        output_dir=os.getenv("LOCSYNC_OUTPUT_DIR", "."),
        log_file=os.getenv("LOCSYNC_LOG_FILE") or None,
    )
    return cfg
