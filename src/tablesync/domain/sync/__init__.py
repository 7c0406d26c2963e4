"""Reconciliation core for syncing local records against remote items.

Layered flow of an ID-matched run:
1) read both sides once into immutable snapshots
2) match local records to remote items on the ID properties
3) classify every matched pair as push, pull or equal
4) apply the plan through the Remote Client, hooks and the Row Store

``TimestampReconciler`` is the alternative flow where the last modified side
wins instead of the property groups.
"""

from __future__ import annotations

from .classify import classify_pair
from .engine import ReconciliationEngine
from .equality import Comparator, CompareOptions, compare, compare_record, is_empty, to_instant
from .errors import HookError, InvalidSyncSchemaError, SyncError, TransportError
from .execute import EntryOutcome, PlanExecutor, SyncResult, execute_plan
from .hooks import SyncHooks
from .match import match_records
from .ports import RemoteClient, RowStore
from .properties import PropertySpec, PropertyType, SyncSchema, encode_properties
from .records import (
    ChangeEntry,
    ChangeKind,
    ChangePlan,
    EntryStatus,
    LocalRecordSet,
    Record,
    RemoteDraft,
    RemoteItem,
    RemoteItemSet,
    Side,
)
from .timestamps import (
    RecordState,
    TimestampOutcome,
    TimestampReconciler,
    TimestampSyncResult,
    Transition,
    resolve_winner,
)

__all__ = [
    "ChangeEntry",
    "ChangeKind",
    "ChangePlan",
    "Comparator",
    "CompareOptions",
    "EntryOutcome",
    "EntryStatus",
    "HookError",
    "InvalidSyncSchemaError",
    "LocalRecordSet",
    "PlanExecutor",
    "PropertySpec",
    "PropertyType",
    "ReconciliationEngine",
    "Record",
    "RecordState",
    "RemoteClient",
    "RemoteDraft",
    "RemoteItem",
    "RemoteItemSet",
    "RowStore",
    "Side",
    "SyncError",
    "SyncHooks",
    "SyncResult",
    "SyncSchema",
    "TimestampOutcome",
    "TimestampReconciler",
    "TimestampSyncResult",
    "TransportError",
    "Transition",
    "classify_pair",
    "compare",
    "compare_record",
    "encode_properties",
    "execute_plan",
    "is_empty",
    "match_records",
    "resolve_winner",
    "to_instant",
]
