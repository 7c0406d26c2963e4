"""Notion configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

NOTION_BASE_URL = "https://api.notion.com/v1/"
DEFAULT_NOTION_VERSION = "2022-06-28"
NOTION_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class NotionConfig:
    """Holds the Notion integration token, target database and HTTP settings."""

    token: str
    database_id: str
    resilience: ResilienceConfig


def build_notion_resilience(token: str, *, version: str = DEFAULT_NOTION_VERSION) -> ResilienceConfig:
    # Notion allows an average of three requests per second per integration.
    return ResilienceConfig(
        name="notion",
        base_url=NOTION_BASE_URL,
        timeout_seconds=NOTION_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=3, per_seconds=1.0),
        retry=RetryPolicy(total=4),
        default_headers={
            "Authorization": f"Bearer {token}",
            "Notion-Version": version,
            "Content-Type": "application/json",
        },
    )


def get_notion_config(*, resilience: ResilienceConfig | None = None) -> NotionConfig:
    values = require_env_vars(("NOTION_TOKEN", "NOTION_DATABASE_ID"))
    token = values["NOTION_TOKEN"]
    version = os.getenv("NOTION_VERSION") or DEFAULT_NOTION_VERSION
    return NotionConfig(
        token=token,
        database_id=values["NOTION_DATABASE_ID"],
        resilience=resilience or build_notion_resilience(token, version=version),
    )
