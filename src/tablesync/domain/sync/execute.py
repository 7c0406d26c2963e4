"""Apply a change plan through the Remote Client and the Row Store.

Responsibilities of this stage:
- run every enabled entry of the plan, one collaborator call per entry
- invoke hooks before each write and honour their skip decisions
- batch local writes into one ``upsert`` per identifying key, then ``persist``

A failing entry is logged and marked failed; the remaining entries still run.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .equality import is_empty
from .errors import HookError, TransportError
from .hooks import SyncHooks, call_hook
from .ports import call_transport
from .properties import encode_properties
from .records import ChangeKind, EntryStatus, RemoteDraft, Side

if TYPE_CHECKING:
    from tablesync.config.sync import SyncPolicy

    from .ports import RemoteClient, RowStore
    from .properties import SyncSchema
    from .records import ChangeEntry, ChangePlan, Record, RemoteItem


log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EntryOutcome:
    entry: ChangeEntry
    status: EntryStatus
    error: str | None = None


@dataclass(slots=True)
class SyncResult:
    """Summary of one executed change plan."""

    outcomes: list[EntryOutcome] = field(default_factory=list)
    local_changed: bool = False
    local_write_error: str | None = None

    def count(self, status: EntryStatus, kind: ChangeKind | None = None) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.status is status and (kind is None or outcome.entry.kind is kind)
        )

    @property
    def executed(self) -> Counter[ChangeKind]:
        return Counter(
            outcome.entry.kind
            for outcome in self.outcomes
            if outcome.status is EntryStatus.EXECUTED
        )

    @property
    def failed(self) -> int:
        return self.count(EntryStatus.FAILED)

    @property
    def changed_anything(self) -> bool:
        return bool(self.executed) or self.local_changed


def policy_allows(policy: SyncPolicy, kind: ChangeKind) -> bool:
    flags = {
        ChangeKind.ADD: policy.use_add,
        ChangeKind.PUSH: policy.use_push,
        ChangeKind.PULL: policy.use_pull,
        ChangeKind.DELETE: policy.use_delete,
        ChangeKind.PULL_NEW: policy.use_pull_new,
    }
    return flags.get(kind, False)


def with_metadata(
    record: Mapping[str, object],
    item: RemoteItem,
    schema: SyncSchema,
) -> Record:
    """Copy ``record`` and stamp the configured remote id/last-modified columns."""

    stamped: Record = dict(record)
    if schema.remote_id_property:
        stamped[schema.remote_id_property] = item.remote_id
    if schema.last_modified_property:
        stamped[schema.last_modified_property] = item.last_modified
    return stamped


@dataclass(slots=True)
class PlanExecutor:
    remote: RemoteClient
    row_store: RowStore
    schema: SyncSchema
    policy: SyncPolicy
    hooks: SyncHooks = field(default_factory=SyncHooks)

    def __call__(self, plan: ChangePlan) -> SyncResult:
        result = SyncResult()
        pending: list[Record] = []

        for entry in plan.entries:
            if entry.kind is ChangeKind.EQUAL or not policy_allows(self.policy, entry.kind):
                log.debug("Skipping %s entry %s", entry.kind, entry)
                result.outcomes.append(EntryOutcome(entry, EntryStatus.SKIPPED))
                continue
            try:
                status = self._apply(plan, entry, pending)
            except (TransportError, HookError) as exc:
                log.exception("Failed to apply %s entry %s", entry.kind, entry)
                result.outcomes.append(EntryOutcome(entry, EntryStatus.FAILED, str(exc)))
                continue
            result.outcomes.append(EntryOutcome(entry, status))

        self._write_back(pending, result)
        self._log_summary(result)
        return result

    # ------------------------------------------------------------------
    # per kind

    def _apply(self, plan: ChangePlan, entry: ChangeEntry, pending: list[Record]) -> EntryStatus:
        match entry.kind:
            case ChangeKind.ADD:
                return self._add(plan.local.get(_key(entry.local_key)), pending)
            case ChangeKind.PUSH:
                return self._push(
                    plan.local.get(_key(entry.local_key)),
                    plan.remote.get(_key(entry.remote_key)),
                    pending,
                )
            case ChangeKind.PULL:
                return self._pull(
                    plan.remote.get(_key(entry.remote_key)),
                    pending,
                    local=plan.local.get(_key(entry.local_key)),
                )
            case ChangeKind.PULL_NEW:
                return self._pull(plan.remote.get(_key(entry.remote_key)), pending, local=None)
            case ChangeKind.DELETE:
                return self._delete(plan.remote.get(_key(entry.remote_key)))
            case _:
                return EntryStatus.SKIPPED

    def _add(self, record: Mapping[str, object], pending: list[Record]) -> EntryStatus:
        draft = RemoteDraft(
            properties=encode_properties(record, self.schema.all_properties, include_empty=False)
        )
        draft = call_hook(
            "on_create", self.hooks.on_create, record, draft, expected=RemoteDraft
        )
        if draft is None:
            log.debug("Create hook declined record %s", dict(record))
            return EntryStatus.DECLINED
        created = call_transport("create", self.remote.create, draft)
        log.info("Created remote item %s", created.remote_id)
        if self._tracks_metadata:
            pending.append(with_metadata(record, created, self.schema))
        return EntryStatus.EXECUTED

    def _push(
        self,
        record: Mapping[str, object],
        item: RemoteItem,
        pending: list[Record],
    ) -> EntryStatus:
        outgoing = call_hook(
            "on_update", self.hooks.on_update, Side.LOCAL, record, item, expected=Mapping
        )
        if outgoing is None:
            log.debug("Update hook declined push to %s", item.remote_id)
            return EntryStatus.DECLINED
        payload = encode_properties(outgoing, self.schema.local_properties)
        updated = call_transport("update", self.remote.update, item.remote_id, payload)
        log.info("Pushed local changes to remote item %s", item.remote_id)
        if self._tracks_metadata:
            pending.append(with_metadata(record, updated, self.schema))
        return EntryStatus.EXECUTED

    def _pull(
        self,
        item: RemoteItem,
        pending: list[Record],
        *,
        local: Mapping[str, object] | None,
    ) -> EntryStatus:
        incoming = call_hook("on_pull_new", self.hooks.on_pull_new, item, expected=Mapping)
        if incoming is None:
            log.debug("Pull hook declined remote item %s", item.remote_id)
            return EntryStatus.DECLINED
        record: Record = dict(incoming)
        if local is not None:
            for name in self.schema.id_properties:
                record[name] = local.get(name)
        elif not self.schema.remote_id_property and self._lacks_identity(record):
            log.warning(
                "Declining remote item %s: no ID property value and no remote-id column",
                item.remote_id,
            )
            return EntryStatus.DECLINED
        pending.append(with_metadata(record, item, self.schema))
        log.info("Pulled remote item %s", item.remote_id)
        return EntryStatus.EXECUTED

    def _delete(self, item: RemoteItem) -> EntryStatus:
        allowed = call_hook("on_delete", self.hooks.on_delete, Side.LOCAL, None, item)
        if not allowed:
            log.debug("Delete hook declined remote item %s", item.remote_id)
            return EntryStatus.DECLINED
        call_transport("delete", self.remote.delete, item.remote_id)
        log.info("Archived remote item %s", item.remote_id)
        return EntryStatus.EXECUTED

    # ------------------------------------------------------------------

    @property
    def _tracks_metadata(self) -> bool:
        return bool(self.schema.remote_id_property or self.schema.last_modified_property)

    def _lacks_identity(self, record: Mapping[str, object]) -> bool:
        return all(is_empty(record.get(name)) for name in self.schema.id_properties)

    def _write_key(self, record: Mapping[str, object]) -> tuple[str, ...]:
        remote_id_property = self.schema.remote_id_property
        if remote_id_property and self._lacks_identity(record):
            return (remote_id_property,)
        return self.schema.id_properties

    def _write_back(self, pending: list[Record], result: SyncResult) -> None:
        """Upsert ``pending`` grouped by the columns that identify each row, then persist."""

        if not pending:
            return
        groups: dict[tuple[str, ...], list[Record]] = {}
        for record in pending:
            groups.setdefault(self._write_key(record), []).append(record)
        changed = False
        try:
            for keys, records in groups.items():
                if call_transport("upsert", self.row_store.upsert, records, keys):
                    changed = True
            if changed:
                call_transport("persist", self.row_store.persist)
        except TransportError as exc:
            log.exception("Failed to write %d records to the row store", len(pending))
            result.local_write_error = str(exc)
            return
        result.local_changed = changed

    def _log_summary(self, result: SyncResult) -> None:
        if not result.changed_anything:
            log.info("Synced without any updates")
            return
        summary = ", ".join(f"{kind}={count}" for kind, count in sorted(result.executed.items()))
        log.info(
            f"Synced: {summary or 'no remote changes'}, local_changed={result.local_changed}, "
            f"failed={result.failed}"
        )


def execute_plan(
    plan: ChangePlan,
    *,
    remote: RemoteClient,
    row_store: RowStore,
    schema: SyncSchema,
    policy: SyncPolicy,
    hooks: SyncHooks | None = None,
) -> SyncResult:
    """Apply ``plan`` and return per-entry outcomes."""

    executor = PlanExecutor(
        remote=remote,
        row_store=row_store,
        schema=schema,
        policy=policy,
        hooks=hooks or SyncHooks(),
    )
    return executor(plan)


def _key(key: int | None) -> int:
    if key is None:  # pragma: no cover - entries are built by the matcher
        raise ValueError("Change entry is missing a record key")
    return key
