"""Pair local records with remote items by their ID properties."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .classify import classify_pair
from .equality import compare, is_empty
from .records import ChangeEntry, ChangeKind, ChangePlan

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .properties import SyncSchema
    from .records import LocalRecordSet, RemoteItemSet


log = getLogger(__name__)


def match_records(
    local: LocalRecordSet,
    remote: RemoteItemSet,
    schema: SyncSchema,
) -> ChangePlan:
    """Match both snapshots and classify every record into a change entry.

    Local records are walked in order and each claims the first unread remote
    item that equals it on every ID property. A record whose ID properties are
    all empty can still claim the item named by its remote-id column. Remote
    items nobody claimed yield a DELETE followed by a PULL_NEW entry; which one
    applies is up to the policy.
    """

    if len(local) == 0:
        imports = tuple(
            ChangeEntry(ChangeKind.PULL_NEW, remote_key=key) for key, _item in remote.items()
        )
        return ChangePlan(local=local, remote=remote, entries=imports)

    entries: list[ChangeEntry] = []
    read: set[int] = set()

    for local_key, record in local.items():
        id_values = [record.get(name) for name in schema.id_properties]
        empty_ids = sum(1 for value in id_values if is_empty(value))
        if empty_ids == len(id_values):
            remote_key = _find_linked(record, remote, schema, read)
            if remote_key is None:
                log.debug("Skipping local record %s without identity", local_key)
                continue
        elif empty_ids:
            entries.append(ChangeEntry(ChangeKind.ADD, local_key=local_key))
            continue
        else:
            remote_key = _find_match(record, remote, schema, read)
            if remote_key is None:
                entries.append(ChangeEntry(ChangeKind.ADD, local_key=local_key))
                continue
        read.add(remote_key)
        kind = classify_pair(record, remote.get(remote_key), schema)
        entries.append(ChangeEntry(kind, local_key=local_key, remote_key=remote_key))

    for remote_key, _item in remote.items():
        if remote_key in read:
            continue
        entries.append(ChangeEntry(ChangeKind.DELETE, remote_key=remote_key))
        entries.append(ChangeEntry(ChangeKind.PULL_NEW, remote_key=remote_key))

    return ChangePlan(local=local, remote=remote, entries=tuple(entries))


def _find_match(
    record: Mapping[str, object],
    remote: RemoteItemSet,
    schema: SyncSchema,
    read: set[int],
) -> int | None:
    for remote_key, item in remote.items():
        if remote_key in read:
            continue
        if all(_id_equal(name, record, item.properties, schema) for name in schema.id_properties):
            return remote_key
    return None


def _id_equal(
    name: str,
    record: Mapping[str, object],
    properties: Mapping[str, object],
    schema: SyncSchema,
) -> bool:
    comparator = schema.comparators.get(name, compare)
    return comparator(record.get(name), properties.get(name))


def _find_linked(
    record: Mapping[str, object],
    remote: RemoteItemSet,
    schema: SyncSchema,
    read: set[int],
) -> int | None:
    if not schema.remote_id_property:
        return None
    remote_id = record.get(schema.remote_id_property)
    if is_empty(remote_id):
        return None
    for remote_key, item in remote.items():
        if remote_key not in read and item.remote_id == remote_id:
            return remote_key
    return None
