"""Collaborator contracts consumed by the sync core."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from .records import Record, RemoteDraft, RemoteItem


@runtime_checkable
class RowStore(Protocol):
    """Tabular store holding the local records."""

    def read_all(self) -> list[Record]: ...

    def upsert(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
        *,
        only_on_change: bool = False,
    ) -> bool:
        """Update rows matched on ``id_properties`` and append the rest.

        Returns whether any row changed.
        """
        ...

    def remove(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
    ) -> bool: ...

    def persist(self) -> None:
        """Commit pending writes and normalize the store."""
        ...


@runtime_checkable
class RemoteClient(Protocol):
    """External system of record holding the remote items."""

    def query(self, filter: Mapping[str, Any] | None = None) -> list[RemoteItem]: ...  # noqa: A002

    def create(self, draft: RemoteDraft) -> RemoteItem: ...

    def update(self, remote_id: str, properties: Mapping[str, Any]) -> RemoteItem: ...

    def delete(self, remote_id: str) -> RemoteItem: ...

    def get_by_id(self, remote_id: str) -> RemoteItem | None: ...


def call_transport[T](operation: str, func: Callable[..., T], *args: object) -> T:
    """Invoke a collaborator, normalizing any failure into ``TransportError``."""

    try:
        return func(*args)
    except TransportError:
        raise
    except Exception as exc:
        raise TransportError(f"{operation} failed: {exc}", operation=operation) from exc
