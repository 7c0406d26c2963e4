"""Snapshot and change-set types shared by the match/classify/apply stages.

Stages never hand each other mutable lists: both sides of a run are frozen into
keyed snapshots, records are exposed as read-only mappings, and the matcher's
output is an immutable ``ChangePlan`` that refers to records by key.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from datetime import datetime


type Record = dict[str, object]
type RecordKey = int


class Side(StrEnum):
    """Which store a value, a win or a hook direction refers to."""

    LOCAL = "local"
    REMOTE = "remote"


class ChangeKind(StrEnum):
    ADD = "add"
    PUSH = "push"
    PULL = "pull"
    DELETE = "delete"
    PULL_NEW = "pull_new"
    EQUAL = "equal"


class EntryStatus(StrEnum):
    """What happened to one change entry during execution."""

    EXECUTED = "executed"
    SKIPPED = "skipped"
    DECLINED = "declined"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RemoteItem:
    """One page/event of the external system of record."""

    remote_id: str
    properties: Mapping[str, object] = field(default_factory=dict)
    last_modified: datetime | None = None
    url: str | None = None

    def __post_init__(self) -> None:
        if not self.remote_id:
            raise ValueError("Remote item requires a remote_id")
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    def restricted_to(self, names: Iterable[str]) -> RemoteItem:
        """Return a copy exposing only the properties in ``names``."""

        wanted = set(names)
        return RemoteItem(
            remote_id=self.remote_id,
            properties={key: value for key, value in self.properties.items() if key in wanted},
            last_modified=self.last_modified,
            url=self.url,
        )


@dataclass(slots=True)
class RemoteDraft:
    """Encoded payload for a remote create, editable by the create hook.

    ``properties`` holds wire-format property values keyed by property name;
    ``extra`` carries additional top-level request fields (icon, cover, parent).
    """

    properties: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LocalRecordSet:
    """Local records of one run, addressed by their position in the read."""

    records: tuple[Mapping[str, object], ...] = ()

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, object]]) -> LocalRecordSet:
        return cls(tuple(MappingProxyType(dict(record)) for record in records))

    def __len__(self) -> int:
        return len(self.records)

    def get(self, key: RecordKey) -> Mapping[str, object]:
        return self.records[key]

    def items(self) -> Iterator[tuple[RecordKey, Mapping[str, object]]]:
        return iter(enumerate(self.records))


@dataclass(frozen=True, slots=True)
class RemoteItemSet:
    """Remote items of one run, addressed by their position in the query result."""

    items_: tuple[RemoteItem, ...] = ()

    @classmethod
    def from_items(
        cls,
        items: Iterable[RemoteItem],
        *,
        names: Iterable[str] | None = None,
    ) -> RemoteItemSet:
        if names is None:
            return cls(tuple(items))
        wanted = tuple(names)
        return cls(tuple(item.restricted_to(wanted) for item in items))

    def __len__(self) -> int:
        return len(self.items_)

    def get(self, key: RecordKey) -> RemoteItem:
        return self.items_[key]

    def items(self) -> Iterator[tuple[RecordKey, RemoteItem]]:
        return iter(enumerate(self.items_))


@dataclass(frozen=True, slots=True)
class ChangeEntry:
    kind: ChangeKind
    local_key: RecordKey | None = None
    remote_key: RecordKey | None = None


@dataclass(frozen=True, slots=True)
class ChangePlan:
    """Classified differences between one local and one remote snapshot."""

    local: LocalRecordSet
    remote: RemoteItemSet
    entries: tuple[ChangeEntry, ...] = ()

    def counts(self) -> Counter[ChangeKind]:
        return Counter(entry.kind for entry in self.entries)

    def of_kind(self, kind: ChangeKind) -> tuple[ChangeEntry, ...]:
        return tuple(entry for entry in self.entries if entry.kind is kind)
