"""Reconciliation policy defaults."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SyncPolicy:
    """Independently togglable switches for each change kind.

    Destructive directions (deleting remote items, importing unknown remote
    items into the local store) are off unless asked for.
    """

    use_add: bool = True
    use_push: bool = True
    use_pull: bool = True
    use_pull_new: bool = False
    use_delete: bool = False


def get_sync_policy() -> SyncPolicy:
    return SyncPolicy()
