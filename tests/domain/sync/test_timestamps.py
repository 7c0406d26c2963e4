from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest

from tablesync.config.errors import ConfigurationError
from tablesync.config.sync import SyncPolicy
from tablesync.domain.sync.hooks import SyncHooks
from tablesync.domain.sync.properties import PropertySpec, PropertyType, SyncSchema
from tablesync.domain.sync.records import EntryStatus, RemoteDraft, RemoteItem, Side
from tablesync.domain.sync.timestamps import (
    RecordState,
    TimestampReconciler,
    Transition,
    resolve_winner,
)
from tests.support.fakes import FakeRemoteClient, InMemoryRowStore

if TYPE_CHECKING:
    from collections.abc import Mapping

JAN = datetime(2024, 1, 1, tzinfo=UTC)
FEB = datetime(2024, 2, 1, tzinfo=UTC)
MAR = datetime(2024, 3, 1, tzinfo=UTC)


@pytest.fixture
def schema() -> SyncSchema:
    return SyncSchema(
        id_properties=("name",),
        local_properties=(
            PropertySpec("name", PropertyType.TITLE),
            PropertySpec("amount", PropertyType.NUMBER),
        ),
    )


def _reconciler(
    schema: SyncSchema,
    store: InMemoryRowStore,
    remote: FakeRemoteClient,
    **kwargs: Any,
) -> TimestampReconciler:
    return TimestampReconciler(
        store,
        remote,
        schema,
        remote_id_property="page_id",
        timestamp_property="last_synced",
        **kwargs,
    )


def test_resolve_winner_picks_the_later_side() -> None:
    assert resolve_winner(FEB, JAN) is Side.LOCAL
    assert resolve_winner(JAN, FEB) is Side.REMOTE
    assert resolve_winner("2024-01-01T00:00:00Z", JAN) is None


def test_resolve_winner_treats_missing_instants_as_epoch() -> None:
    assert resolve_winner(None, JAN) is Side.REMOTE
    assert resolve_winner(JAN, "garbage") is Side.LOCAL
    assert resolve_winner(None, None) is None


def test_new_rows_are_created_and_stamped(schema: SyncSchema) -> None:
    store = InMemoryRowStore(rows=[{"name": "A", "amount": 2}])
    remote = FakeRemoteClient()

    result = _reconciler(schema, store, remote).reconcile()

    assert result.count(Transition.CREATE) == 1
    assert result.outcomes[0].state is RecordState.NO_REMOTE_ID
    assert store.rows == [
        {
            "name": "A",
            "amount": 2,
            "page_id": "page-1",
            "last_synced": remote.items["page-1"].last_modified,
        }
    ]
    assert store.upserts[0][1] == ("name",)
    assert store.persisted == 1


def test_remote_newer_pulls_into_the_row(schema: SyncSchema) -> None:
    store = InMemoryRowStore(
        rows=[{"name": "A", "amount": 1, "page_id": "p1", "last_synced": JAN}]
    )
    remote = FakeRemoteClient([RemoteItem("p1", {"name": "A", "amount": 5}, last_modified=FEB)])

    result = _reconciler(schema, store, remote).reconcile()

    assert result.outcomes[0].winner is Side.REMOTE
    assert result.count(Transition.UPDATE) == 1
    assert remote.calls_to("update") == []
    assert store.rows == [{"name": "A", "amount": 5, "page_id": "p1", "last_synced": FEB}]
    assert store.upserts[0][1] == ("page_id",)


def test_local_newer_pushes_to_remote(schema: SyncSchema) -> None:
    store = InMemoryRowStore(
        rows=[{"name": "A", "amount": 7, "page_id": "p1", "last_synced": MAR}]
    )
    remote = FakeRemoteClient([RemoteItem("p1", {"name": "A", "amount": 5}, last_modified=FEB)])

    result = _reconciler(schema, store, remote).reconcile()

    assert result.outcomes[0].winner is Side.LOCAL
    [(remote_id, payload)] = remote.calls_to("update")
    assert remote_id == "p1"
    assert payload["amount"] == {"number": 7}
    assert store.rows[0]["last_synced"] == remote.items["p1"].last_modified


def test_equal_instants_change_nothing(schema: SyncSchema, caplog: pytest.LogCaptureFixture) -> None:
    store = InMemoryRowStore(
        rows=[{"name": "A", "amount": 7, "page_id": "p1", "last_synced": FEB}]
    )
    remote = FakeRemoteClient([RemoteItem("p1", {"name": "A", "amount": 5}, last_modified=FEB)])

    with caplog.at_level(logging.INFO):
        result = _reconciler(schema, store, remote).reconcile()

    assert result.outcomes[0].transition is None
    assert result.outcomes[0].status is EntryStatus.SKIPPED
    assert store.upserts == []
    assert "Synced without any updates" in caplog.text


def test_missing_remote_item_is_confirmed_then_removed(schema: SyncSchema) -> None:
    store = InMemoryRowStore(
        rows=[{"name": "A", "page_id": "gone", "last_synced": JAN}, {"name": "B"}]
    )
    remote = FakeRemoteClient()
    policy = SyncPolicy(use_add=False, use_delete=True)

    result = _reconciler(schema, store, remote, policy=policy).reconcile()

    assert remote.calls_to("get_by_id") == ["gone"]
    assert result.count(Transition.DELETE) == 1
    assert store.removals == [([{"page_id": "gone"}], ("page_id",))]
    assert store.rows == [{"name": "B"}]


def test_item_outside_the_query_is_updated_not_removed(schema: SyncSchema) -> None:
    class FilteredRemote(FakeRemoteClient):
        def query(self, filter: Mapping[str, Any] | None = None) -> list[RemoteItem]:  # noqa: A002
            self._record("query", filter)
            return []

    store = InMemoryRowStore(
        rows=[{"name": "A", "amount": 1, "page_id": "p1", "last_synced": JAN}]
    )
    remote = FilteredRemote([RemoteItem("p1", {"name": "A", "amount": 2}, last_modified=FEB)])
    policy = SyncPolicy(use_delete=True)

    result = _reconciler(schema, store, remote, policy=policy).reconcile()

    assert result.count(Transition.UPDATE) == 1
    assert result.count(Transition.DELETE) == 0
    assert store.rows[0]["amount"] == 2


def test_missing_item_is_kept_when_delete_is_disabled(schema: SyncSchema) -> None:
    store = InMemoryRowStore(rows=[{"name": "A", "page_id": "gone", "last_synced": JAN}])
    remote = FakeRemoteClient()

    result = _reconciler(schema, store, remote).reconcile()

    assert remote.calls_to("get_by_id") == []
    assert result.outcomes[0].status is EntryStatus.SKIPPED
    assert store.removals == []


def test_delete_hook_can_keep_the_row(schema: SyncSchema) -> None:
    class KeepRows(SyncHooks):
        def on_delete(
            self,
            direction: Side,
            record: Mapping[str, object] | None,
            item: RemoteItem | None,
        ) -> bool:
            assert direction is Side.REMOTE
            return False

    store = InMemoryRowStore(rows=[{"name": "A", "page_id": "gone", "last_synced": JAN}])
    remote = FakeRemoteClient()
    policy = SyncPolicy(use_delete=True)

    result = _reconciler(schema, store, remote, policy=policy, hooks=KeepRows()).reconcile()

    assert result.outcomes[0].status is EntryStatus.DECLINED
    assert len(store.rows) == 1


def test_orphan_items_are_pulled_as_new_rows(schema: SyncSchema) -> None:
    store = InMemoryRowStore(rows=[])
    remote = FakeRemoteClient([RemoteItem("p1", {"name": "B", "amount": 4}, last_modified=FEB)])
    policy = SyncPolicy(use_pull_new=True)

    result = _reconciler(schema, store, remote, policy=policy).reconcile()

    assert result.outcomes[0].state is RecordState.ORPHAN_REMOTE
    assert result.count(Transition.PULL_NEW) == 1
    assert store.rows == [{"name": "B", "amount": 4, "page_id": "p1", "last_synced": FEB}]


def test_orphans_are_ignored_without_pull_new(schema: SyncSchema) -> None:
    store = InMemoryRowStore(rows=[])
    remote = FakeRemoteClient([RemoteItem("p1", {"name": "B"}, last_modified=FEB)])

    result = _reconciler(schema, store, remote).reconcile()

    assert result.outcomes[0].status is EntryStatus.SKIPPED
    assert store.upserts == []


def test_unusable_draft_is_discarded(
    schema: SyncSchema, caplog: pytest.LogCaptureFixture
) -> None:
    store = InMemoryRowStore(rows=[{"name": None, "amount": None}])
    remote = FakeRemoteClient()

    with caplog.at_level(logging.WARNING):
        result = _reconciler(schema, store, remote).reconcile()

    assert result.outcomes[0].status is EntryStatus.DECLINED
    assert remote.calls_to("create") == []
    assert "unusable create draft" in caplog.text


def test_failed_push_is_recorded_and_the_run_continues(schema: SyncSchema) -> None:
    store = InMemoryRowStore(
        rows=[
            {"name": "A", "amount": 7, "page_id": "p1", "last_synced": MAR},
            {"name": "B", "amount": 1, "page_id": "p2", "last_synced": JAN},
        ]
    )
    remote = FakeRemoteClient(
        [
            RemoteItem("p1", {"name": "A", "amount": 5}, last_modified=FEB),
            RemoteItem("p2", {"name": "B", "amount": 3}, last_modified=FEB),
        ]
    )
    remote.failures["update"] = RuntimeError("conflict")

    result = _reconciler(schema, store, remote).reconcile()

    assert result.failed == 1
    assert result.outcomes[0].error == "update failed: conflict"
    assert result.count(Transition.UPDATE) == 1
    assert store.rows[1]["amount"] == 3


def test_creating_without_ids_is_a_configuration_error() -> None:
    schema = SyncSchema(
        id_properties=(),
        local_properties=(PropertySpec("amount", PropertyType.NUMBER),),
    )
    store = InMemoryRowStore(rows=[{"amount": 1}])

    with pytest.raises(ConfigurationError):
        _reconciler(schema, store, FakeRemoteClient()).reconcile()

    assert store.reads == 0


def test_timestamps_work_without_ids_when_not_creating() -> None:
    schema = SyncSchema(
        id_properties=(),
        local_properties=(PropertySpec("amount", PropertyType.NUMBER),),
    )
    store = InMemoryRowStore(rows=[{"amount": 1, "page_id": "p1", "last_synced": JAN}])
    remote = FakeRemoteClient([RemoteItem("p1", {"amount": 9}, last_modified=FEB)])

    result = _reconciler(schema, store, remote, policy=SyncPolicy(use_add=False)).reconcile()

    assert result.count(Transition.UPDATE) == 1
    assert store.rows[0]["amount"] == 9


def test_create_hook_returning_a_non_draft_fails_the_record(schema: SyncSchema) -> None:
    class Hooks(SyncHooks):
        def on_create(
            self, record: Mapping[str, object], draft: RemoteDraft
        ) -> RemoteDraft | None:
            return {"properties": {}}  # type: ignore[return-value]

    store = InMemoryRowStore(rows=[{"name": "A", "amount": 1}, {"name": "B", "page_id": "p1"}])
    remote = FakeRemoteClient([RemoteItem("p1", {"name": "B"}, last_modified=FEB)])

    result = _reconciler(schema, store, remote, hooks=Hooks()).reconcile()

    failed = result.outcomes[0]
    assert failed.status is EntryStatus.FAILED
    assert failed.transition is Transition.CREATE
    assert failed.error == "on_create hook returned an unusable dict"
    assert remote.calls_to("create") == []
    assert result.count(Transition.UPDATE) == 1
