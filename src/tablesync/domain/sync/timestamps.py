"""Reconciliation where the most recently modified side wins.

Local rows carry the remote identifier and a last-synced instant in two
dedicated columns. A row without an identifier is new; a row whose identifier
is gone remotely was deleted there; otherwise the later of the row's instant
and the item's ``last_modified`` decides the direction of the update. Remote
items no row links to are orphans and may be pulled as new rows.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from tablesync.config.errors import ConfigurationError
from tablesync.config.sync import SyncPolicy

from .equality import is_empty, to_instant
from .errors import HookError, TransportError
from .hooks import SyncHooks, call_hook
from .ports import call_transport
from .properties import encode_properties
from .records import EntryStatus, RemoteDraft, Side

if TYPE_CHECKING:
    from collections.abc import Callable

    from .ports import RemoteClient, RowStore
    from .properties import SyncSchema
    from .records import Record, RemoteItem


log = getLogger(__name__)

type Step = Callable[..., tuple[EntryStatus, Side | None]]


class RecordState(StrEnum):
    NO_REMOTE_ID = "no_remote_id"
    HAS_REMOTE_ID = "has_remote_id"
    ORPHAN_REMOTE = "orphan_remote"


class Transition(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PULL_NEW = "pull_new"


def resolve_winner(local_instant: object, remote_instant: object) -> Side | None:
    """Return the side modified last, or ``None`` when both instants are equal.

    Missing or unparseable instants count as the epoch.
    """

    gap = _epoch_seconds(local_instant) - _epoch_seconds(remote_instant)
    if gap > 0:
        return Side.LOCAL
    if gap < 0:
        return Side.REMOTE
    return None


def _epoch_seconds(value: object) -> float:
    moment = to_instant(value)
    return moment.timestamp() if moment is not None else 0.0


@dataclass(frozen=True, slots=True)
class TimestampOutcome:
    state: RecordState
    transition: Transition | None
    status: EntryStatus
    remote_id: str | None = None
    winner: Side | None = None
    error: str | None = None


@dataclass(slots=True)
class TimestampSyncResult:
    outcomes: list[TimestampOutcome] = field(default_factory=list)
    local_changed: bool = False
    local_write_error: str | None = None

    def count(self, transition: Transition, status: EntryStatus = EntryStatus.EXECUTED) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.transition is transition and outcome.status is status
        )

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is EntryStatus.FAILED)


@dataclass(slots=True)
class _LocalWrites:
    created: list[Record] = field(default_factory=list)
    linked: list[Record] = field(default_factory=list)
    removed: list[Record] = field(default_factory=list)


@dataclass(slots=True)
class TimestampReconciler:
    """Run one last-modified-wins pass over a Row Store and a Remote Client."""

    row_store: RowStore
    remote: RemoteClient
    schema: SyncSchema
    policy: SyncPolicy = field(default_factory=SyncPolicy)
    hooks: SyncHooks = field(default_factory=SyncHooks)
    remote_id_property: str = "_remote_id"
    timestamp_property: str = "_last_synced"
    confirm_missing: bool = True
    remote_filter: Mapping[str, Any] | None = None

    def reconcile(self) -> TimestampSyncResult:
        self._validate()
        rows = call_transport("read_all", self.row_store.read_all)
        items = call_transport("query", self.remote.query, self.remote_filter)
        log.info(f"Read {len(rows)} local records and {len(items)} remote items")

        by_id = {item.remote_id: item for item in items}
        linked_ids: set[str] = set()
        writes = _LocalWrites()
        result = TimestampSyncResult()

        for row in rows:
            record: Record = dict(row)
            remote_id = record.get(self.remote_id_property)
            if is_empty(remote_id):
                outcome = self._guard(
                    RecordState.NO_REMOTE_ID, Transition.CREATE, None, self._create, record, writes
                )
            else:
                remote_id = str(remote_id)
                linked_ids.add(remote_id)
                item = by_id.get(remote_id)
                if item is None and self.confirm_missing and self.policy.use_delete:
                    try:
                        item = call_transport("get_by_id", self.remote.get_by_id, remote_id)
                    except TransportError as exc:
                        log.exception("Failed to confirm remote item %s", remote_id)
                        result.outcomes.append(
                            TimestampOutcome(
                                RecordState.HAS_REMOTE_ID,
                                Transition.DELETE,
                                EntryStatus.FAILED,
                                remote_id,
                                error=str(exc),
                            )
                        )
                        continue
                if item is None:
                    outcome = self._guard(
                        RecordState.HAS_REMOTE_ID,
                        Transition.DELETE,
                        remote_id,
                        self._missing,
                        record,
                        remote_id,
                        writes,
                    )
                else:
                    outcome = self._guard(
                        RecordState.HAS_REMOTE_ID,
                        Transition.UPDATE,
                        remote_id,
                        self._update,
                        record,
                        item,
                        writes,
                    )
            result.outcomes.append(outcome)

        for item in items:
            if item.remote_id in linked_ids:
                continue
            result.outcomes.append(
                self._guard(
                    RecordState.ORPHAN_REMOTE,
                    Transition.PULL_NEW,
                    item.remote_id,
                    self._pull_new,
                    item,
                    writes,
                )
            )

        self._write_back(writes, result)
        executed = sum(1 for outcome in result.outcomes if outcome.status is EntryStatus.EXECUTED)
        if not executed and not result.local_changed:
            log.info("Synced without any updates")
        else:
            log.info(
                f"Synced: created={result.count(Transition.CREATE)}, "
                f"updated={result.count(Transition.UPDATE)}, "
                f"deleted={result.count(Transition.DELETE)}, "
                f"pulled={result.count(Transition.PULL_NEW)}, failed={result.failed}"
            )
        return result

    def _validate(self) -> None:
        self.schema.validate(require_id_properties=False)
        if self.policy.use_add and not self.schema.id_properties:
            raise ConfigurationError(
                "Creating remote items requires ID properties to link rows back"
            )
        if self.remote_id_property == self.timestamp_property:
            raise ConfigurationError("Remote id and timestamp columns must differ")

    def _guard(
        self,
        state: RecordState,
        transition: Transition,
        remote_id: str | None,
        step: Step,
        *args: object,
    ) -> TimestampOutcome:
        try:
            status, winner = step(*args)
        except (TransportError, HookError) as exc:
            log.exception("Failed to %s record %s", transition, remote_id or "<unlinked>")
            return TimestampOutcome(
                state, transition, EntryStatus.FAILED, remote_id, error=str(exc)
            )
        if status is EntryStatus.SKIPPED:
            return TimestampOutcome(state, None, status, remote_id, winner)
        return TimestampOutcome(state, transition, status, remote_id, winner)

    # ------------------------------------------------------------------
    # transitions

    def _create(self, record: Record, writes: _LocalWrites) -> tuple[EntryStatus, Side | None]:
        if not self.policy.use_add:
            return EntryStatus.SKIPPED, None
        draft = RemoteDraft(
            properties=encode_properties(record, self.schema.all_properties, include_empty=False)
        )
        draft = call_hook(
            "on_create", self.hooks.on_create, record, draft, expected=RemoteDraft
        )
        if draft is None or not draft.properties:
            log.warning("Discarding unusable create draft for record %s", record)
            return EntryStatus.DECLINED, None
        created = call_transport("create", self.remote.create, draft)
        log.info("Created remote item %s", created.remote_id)
        writes.created.append(self._stamp(record, created))
        return EntryStatus.EXECUTED, Side.LOCAL

    def _missing(
        self,
        record: Record,
        remote_id: str,
        writes: _LocalWrites,
    ) -> tuple[EntryStatus, Side | None]:
        if not self.policy.use_delete:
            return EntryStatus.SKIPPED, None
        if not call_hook("on_delete", self.hooks.on_delete, Side.REMOTE, record, None):
            log.debug("Delete hook kept row linked to %s", remote_id)
            return EntryStatus.DECLINED, Side.REMOTE
        writes.removed.append({self.remote_id_property: remote_id})
        log.info("Removing row linked to deleted remote item %s", remote_id)
        return EntryStatus.EXECUTED, Side.REMOTE

    def _update(
        self,
        record: Record,
        item: RemoteItem,
        writes: _LocalWrites,
    ) -> tuple[EntryStatus, Side | None]:
        winner = resolve_winner(record.get(self.timestamp_property), item.last_modified)
        if winner is None:
            return EntryStatus.SKIPPED, None
        if winner is Side.LOCAL and not self.policy.use_push:
            return EntryStatus.SKIPPED, winner
        if winner is Side.REMOTE and not self.policy.use_pull:
            return EntryStatus.SKIPPED, winner

        returned = call_hook(
            "on_update", self.hooks.on_update, winner, record, item, expected=Mapping
        )
        if returned is None:
            log.debug("Update hook declined %s win for %s", winner, item.remote_id)
            return EntryStatus.DECLINED, winner

        if winner is Side.LOCAL:
            payload = encode_properties(returned, self.schema.all_properties)
            item = call_transport("update", self.remote.update, item.remote_id, payload)
            log.info("Pushed local changes to remote item %s", item.remote_id)
            writes.linked.append(self._stamp(record, item))
        else:
            log.info("Pulled remote item %s", item.remote_id)
            writes.linked.append(self._stamp(returned, item))
        return EntryStatus.EXECUTED, winner

    def _pull_new(self, item: RemoteItem, writes: _LocalWrites) -> tuple[EntryStatus, Side | None]:
        if not self.policy.use_pull_new:
            return EntryStatus.SKIPPED, None
        record = call_hook("on_pull_new", self.hooks.on_pull_new, item, expected=Mapping)
        if record is None:
            log.debug("Pull hook declined remote item %s", item.remote_id)
            return EntryStatus.DECLINED, Side.REMOTE
        writes.linked.append(self._stamp(record, item))
        log.info("Pulled new remote item %s", item.remote_id)
        return EntryStatus.EXECUTED, Side.REMOTE

    # ------------------------------------------------------------------

    def _stamp(self, record: Mapping[str, object], item: RemoteItem) -> Record:
        stamped: Record = dict(record)
        stamped[self.remote_id_property] = item.remote_id
        stamped[self.timestamp_property] = item.last_modified
        return stamped

    def _write_back(self, writes: _LocalWrites, result: TimestampSyncResult) -> None:
        link = (self.remote_id_property,)
        changed = False
        try:
            if writes.created:
                changed |= call_transport(
                    "upsert", self.row_store.upsert, writes.created, self.schema.id_properties
                )
            if writes.linked:
                changed |= call_transport("upsert", self.row_store.upsert, writes.linked, link)
            if writes.removed:
                changed |= call_transport("remove", self.row_store.remove, writes.removed, link)
            if changed:
                call_transport("persist", self.row_store.persist)
        except TransportError as exc:
            log.exception("Failed to write timestamp sync results to the row store")
            result.local_write_error = str(exc)
            return
        result.local_changed = changed
