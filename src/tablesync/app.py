"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, Any

from tablesync.adapters.notion import NotionClient
from tablesync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyRowStoreUnitOfWork,
    is_started,
    startup,
)
from tablesync.config.notion import get_notion_config
from tablesync.config.sync import get_sync_policy
from tablesync.domain.sync.engine import ReconciliationEngine
from tablesync.domain.sync.timestamps import TimestampReconciler

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime

    from sqlalchemy import Table

    from tablesync.config.sync import SyncPolicy
    from tablesync.domain.sync.execute import SyncResult
    from tablesync.domain.sync.hooks import SyncHooks
    from tablesync.domain.sync.ports import RemoteClient
    from tablesync.domain.sync.properties import SyncSchema
    from tablesync.domain.sync.timestamps import TimestampSyncResult

UnitOfWorkFactory = Callable[[], SqlAlchemyRowStoreUnitOfWork]


log = getLogger(__name__)


def _ensure_started(table: Table) -> None:
    if not is_started():
        startup(metadata=table.metadata)


def sync_notion_database(
    table: Table,
    schema: SyncSchema,
    *,
    remote: RemoteClient | None = None,
    policy: SyncPolicy | None = None,
    hooks: SyncHooks | None = None,
    remote_filter: Mapping[str, Any] | None = None,
    unique_properties: tuple[str, ...] = (),
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> SyncResult:
    """Reconcile ``table`` against the configured Notion database by ID properties."""

    _ensure_started(table)
    effective_remote = remote or NotionClient(config=get_notion_config())
    effective_policy = policy or get_sync_policy()
    effective_uow = unit_of_work_factory or (
        lambda: SqlAlchemyRowStoreUnitOfWork(table, unique_properties=unique_properties)
    )
    log.info(
        "Starting Notion sync: table=%s, ids=%s, policy=%s",
        table.name,
        schema.id_properties,
        effective_policy,
    )

    with effective_uow() as uow:
        engine = ReconciliationEngine(
            row_store=uow.row_store,
            remote=effective_remote,
            schema=schema,
            policy=effective_policy,
            remote_filter=remote_filter,
        )
        if hooks is not None:
            engine.hooks = hooks
        result = engine.reconcile()

    log.info(
        f"Finished Notion sync: executed={dict(result.executed)}, failed={result.failed}, "
        f"local_changed={result.local_changed}"
    )
    return result


def sync_notion_by_timestamp(
    table: Table,
    schema: SyncSchema,
    *,
    remote: RemoteClient | None = None,
    policy: SyncPolicy | None = None,
    hooks: SyncHooks | None = None,
    remote_id_property: str = "_remote_id",
    timestamp_property: str = "_last_synced",
    remote_filter: Mapping[str, Any] | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> TimestampSyncResult:
    """Reconcile ``table`` against Notion letting the most recent edit win."""

    _ensure_started(table)
    effective_remote = remote or NotionClient(config=get_notion_config())
    effective_policy = policy or get_sync_policy()
    effective_uow = unit_of_work_factory or (lambda: SqlAlchemyRowStoreUnitOfWork(table))
    log.info(
        "Starting Notion timestamp sync: table=%s, remote_id=%s, timestamp=%s",
        table.name,
        remote_id_property,
        timestamp_property,
    )

    with effective_uow() as uow:
        reconciler = TimestampReconciler(
            row_store=uow.row_store,
            remote=effective_remote,
            schema=schema,
            policy=effective_policy,
            remote_id_property=remote_id_property,
            timestamp_property=timestamp_property,
            remote_filter=remote_filter,
        )
        if hooks is not None:
            reconciler.hooks = hooks
        result = reconciler.reconcile()

    log.info(
        f"Finished Notion timestamp sync: outcomes={len(result.outcomes)}, "
        f"failed={result.failed}, local_changed={result.local_changed}"
    )
    return result


def record_local_edits(
    table: Table,
    records: Iterable[Mapping[str, object]],
    *,
    id_properties: Sequence[str],
    timestamp_property: str = "_last_synced",
    now: datetime | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> bool:
    """Write edited rows into ``table`` and stamp them as modified locally.

    Rows stamped this way are newer than their remote item, so the next
    ``sync_notion_by_timestamp`` run pushes them. Returns whether any row changed.
    """

    _ensure_started(table)
    effective_uow = unit_of_work_factory or (lambda: SqlAlchemyRowStoreUnitOfWork(table))
    with effective_uow() as uow:
        changed = uow.row_store.record_edits(
            records, id_properties, modified_property=timestamp_property, now=now
        )
        if changed:
            uow.row_store.persist()
    return changed
