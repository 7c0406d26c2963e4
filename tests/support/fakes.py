"""In-memory collaborators recording every call made by the sync core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from tablesync.adapters.notion.translator import decode_property
from tablesync.domain.sync.equality import compare, is_empty
from tablesync.domain.sync.records import RemoteItem

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from tablesync.domain.sync.records import Record, RemoteDraft


@dataclass
class InMemoryRowStore:
    rows: list[Record] = field(default_factory=list)
    upserts: list[tuple[list[Record], tuple[str, ...]]] = field(default_factory=list)
    removals: list[tuple[list[Record], tuple[str, ...]]] = field(default_factory=list)
    persisted: int = 0
    reads: int = 0
    fail_on_write: Exception | None = None

    def read_all(self) -> list[Record]:
        self.reads += 1
        return [dict(row) for row in self.rows]

    def upsert(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
        *,
        only_on_change: bool = False,
    ) -> bool:
        batch = [dict(record) for record in records]
        self.upserts.append((batch, tuple(id_properties)))
        if self.fail_on_write is not None:
            raise self.fail_on_write
        changed = False
        for record in batch:
            match = self._find(record, id_properties)
            if match is None:
                self.rows.append(record)
                changed = True
                continue
            if only_on_change and all(compare(match.get(k), v) for k, v in record.items()):
                continue
            match.update(record)
            changed = True
        return changed

    def remove(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
    ) -> bool:
        batch = [dict(record) for record in records]
        self.removals.append((batch, tuple(id_properties)))
        removed = False
        for record in batch:
            match = self._find(record, id_properties)
            if match is not None:
                self.rows.remove(match)
                removed = True
        return removed

    def persist(self) -> None:
        self.persisted += 1

    def _find(self, record: Mapping[str, object], id_properties: Sequence[str]) -> Record | None:
        keys = [name for name in id_properties if not is_empty(record.get(name))]
        if not keys:
            return None
        for row in self.rows:
            if all(compare(row.get(name), record[name]) for name in keys):
                return row
        return None


def decode_payload(properties: Mapping[str, Any]) -> dict[str, object]:
    """Turn encoded property objects back into plain values, as Notion would echo them."""

    decoded: dict[str, object] = {}
    for name, payload in properties.items():
        kind = next(iter(payload))
        decoded[name] = decode_property({"type": kind, kind: payload[kind]})
    return decoded


class FakeRemoteClient:
    def __init__(
        self,
        items: Iterable[RemoteItem] = (),
        *,
        now: datetime | None = None,
    ) -> None:
        self.items: dict[str, RemoteItem] = {item.remote_id: item for item in items}
        self.calls: list[tuple[str, object]] = []
        self.failures: dict[str, Exception] = {}
        self.now = now or datetime(2024, 6, 1, 12, tzinfo=UTC)
        self._created = 0

    def calls_to(self, operation: str) -> list[object]:
        return [argument for name, argument in self.calls if name == operation]

    def query(self, filter: Mapping[str, Any] | None = None) -> list[RemoteItem]:  # noqa: A002
        self._record("query", filter)
        return list(self.items.values())

    def create(self, draft: RemoteDraft) -> RemoteItem:
        self._record("create", draft)
        self._created += 1
        item = RemoteItem(
            remote_id=f"page-{self._created}",
            properties=decode_payload(draft.properties),
            last_modified=self._tick(),
        )
        self.items[item.remote_id] = item
        return item

    def update(self, remote_id: str, properties: Mapping[str, Any]) -> RemoteItem:
        self._record("update", (remote_id, dict(properties)))
        current = self.items[remote_id]
        item = RemoteItem(
            remote_id=remote_id,
            properties={**current.properties, **decode_payload(properties)},
            last_modified=self._tick(),
        )
        self.items[remote_id] = item
        return item

    def delete(self, remote_id: str) -> RemoteItem:
        self._record("delete", remote_id)
        return self.items.pop(remote_id)

    def get_by_id(self, remote_id: str) -> RemoteItem | None:
        self._record("get_by_id", remote_id)
        return self.items.get(remote_id)

    def _record(self, operation: str, argument: object) -> None:
        self.calls.append((operation, argument))
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    def _tick(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now
