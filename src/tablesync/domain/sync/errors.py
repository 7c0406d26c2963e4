"""Errors raised while planning or executing a sync run."""

from __future__ import annotations

from tablesync.config.errors import ConfigurationError


class SyncError(RuntimeError):
    """Base class for failures during a sync run."""


class InvalidSyncSchemaError(ConfigurationError):
    """Raised when a sync schema cannot drive a run (no IDs, nothing to sync)."""


class TransportError(SyncError):
    """A Row Store or Remote Client call failed."""

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class HookError(SyncError):
    """A user hook raised; the entry it was called for is skipped."""

    def __init__(self, message: str, *, hook: str) -> None:
        super().__init__(message)
        self.hook = hook
