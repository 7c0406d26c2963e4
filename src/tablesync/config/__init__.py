"""Application configuration helpers."""

from __future__ import annotations

from tablesync.common.logging import configure_logging

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .notion import NotionConfig, build_notion_resilience, get_notion_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncPolicy, get_sync_policy

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "NotionConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncPolicy",
    "build_notion_resilience",
    "configure_logging",
    "get_database_config",
    "get_notion_config",
    "get_storage_config",
    "get_sync_policy",
    "require_env_var",
    "require_env_vars",
]
