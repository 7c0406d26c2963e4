"""Orchestrator for ID-matched reconciliation runs.

The engine composes the collaborators but does not prescribe concrete adapters,
so any Row Store / Remote Client pair can share the same match, classify and
apply stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from tablesync.config.sync import SyncPolicy

from .execute import SyncResult, execute_plan
from .hooks import SyncHooks
from .match import match_records
from .ports import call_transport
from .records import LocalRecordSet, RemoteItemSet

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .ports import RemoteClient, RowStore
    from .properties import SyncSchema
    from .records import ChangePlan


log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationEngine:
    """Run a full read, match, classify and apply pass."""

    row_store: RowStore
    remote: RemoteClient
    schema: SyncSchema
    policy: SyncPolicy = field(default_factory=SyncPolicy)
    hooks: SyncHooks = field(default_factory=SyncHooks)
    remote_filter: Mapping[str, Any] | None = None

    def plan(self) -> ChangePlan:
        """Validate the schema, read both sides once and build the change plan."""

        self.schema.validate()
        local = LocalRecordSet.from_records(call_transport("read_all", self.row_store.read_all))
        items = call_transport("query", self.remote.query, self.remote_filter)
        remote = RemoteItemSet.from_items(items, names=self.schema.property_names)
        log.info(f"Read {len(local)} local records and {len(remote)} remote items")
        return match_records(local, remote, self.schema)

    def reconcile(self) -> SyncResult:
        plan = self.plan()
        log.debug(f"Change plan: {dict(plan.counts())}")
        return execute_plan(
            plan,
            remote=self.remote,
            row_store=self.row_store,
            schema=self.schema,
            policy=self.policy,
            hooks=self.hooks,
        )
