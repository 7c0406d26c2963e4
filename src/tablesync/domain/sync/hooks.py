"""Extension points invoked by the executor and the timestamp resolver.

Subclass ``SyncHooks`` and override only the methods you need. Returning
``None`` (or ``False`` from ``on_delete``) skips the entry; an exception is
wrapped into ``HookError`` and also skips the entry without aborting the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import HookError
from .records import Side

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .records import Record, RemoteDraft, RemoteItem


class SyncHooks:
    def on_create(self, record: Mapping[str, object], draft: RemoteDraft) -> RemoteDraft | None:
        """Edit or replace the remote draft built for a new local record."""

        return draft

    def on_update(
        self,
        direction: Side,
        record: Mapping[str, object],
        item: RemoteItem | None,
    ) -> Record | None:
        """Return the record to write in ``direction``.

        ``Side.LOCAL`` wins push ``record`` to the remote item; ``Side.REMOTE``
        wins write the returned record to the local store.
        """

        if direction is Side.REMOTE and item is not None:
            return {**record, **item.properties}
        return dict(record)

    def on_delete(
        self,
        direction: Side,
        record: Mapping[str, object] | None,
        item: RemoteItem | None,
    ) -> bool:
        return True

    def on_pull_new(self, item: RemoteItem) -> Record | None:
        """Build a local record from a remote item."""

        return dict(item.properties)


def call_hook[T](
    name: str,
    func: Callable[..., T],
    *args: object,
    expected: type | tuple[type, ...] | None = None,
) -> T:
    """Call a hook, raising ``HookError`` when it fails or returns something unusable.

    A non-``None`` result must be an instance of ``expected`` when given.
    """

    try:
        result = func(*args)
    except Exception as exc:
        raise HookError(f"{name} hook failed: {exc}", hook=name) from exc
    if expected is not None and result is not None and not isinstance(result, expected):
        raise HookError(
            f"{name} hook returned an unusable {type(result).__name__}", hook=name
        )
    return result
