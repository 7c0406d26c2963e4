"""Decide the direction of change for a matched local/remote pair."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .equality import compare_record
from .records import ChangeKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .properties import SyncSchema
    from .records import RemoteItem


def classify_pair(
    local: Mapping[str, object],
    remote: RemoteItem,
    schema: SyncSchema,
) -> ChangeKind:
    """Return PULL, PUSH or EQUAL for one matched pair.

    Remotely-authoritative differences win over locally-authoritative ones, so a
    pair differing in both groups is pulled. An empty group never differs.
    """

    pull_needed = bool(schema.remote_names) and not compare_record(
        local,
        remote.properties,
        schema.remote_names,
        comparators=schema.comparators,
    )
    if pull_needed:
        return ChangeKind.PULL

    push_needed = bool(schema.local_names) and not compare_record(
        local,
        remote.properties,
        schema.local_names,
        comparators=schema.comparators,
    )
    if push_needed:
        return ChangeKind.PUSH
    return ChangeKind.EQUAL
