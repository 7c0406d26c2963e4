"""Row Store implementation over a caller-declared SQLAlchemy Core table."""

from __future__ import annotations

from datetime import UTC, date, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from tablesync.config.errors import ConfigurationError
from tablesync.domain.sync.equality import compare, is_empty, to_instant
from tablesync.domain.sync.errors import TransportError
from tablesync.domain.sync.properties import as_bool

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from sqlalchemy import Column, Table
    from sqlalchemy.orm import Session

    from tablesync.domain.sync.records import Record

log = getLogger(__name__)


class RowStoreError(TransportError):
    """Raised when the database rejects a row store operation."""


class SqlAlchemyRowStore:
    """Expose the rows of ``table`` as records keyed by column name.

    Rows are matched on the primary key when a record carries one, and on the
    caller's ID properties otherwise. ``persist`` commits the session after
    purging rows without any value and collapsing duplicates over
    ``unique_properties`` (the row with the lowest primary key is kept).
    """

    def __init__(
        self,
        session: Session,
        table: Table,
        *,
        unique_properties: Sequence[str] = (),
    ) -> None:
        primary_key = tuple(table.primary_key.columns)
        if not primary_key:
            raise ConfigurationError(f"Row store table {table.name!r} needs a primary key")
        unknown = [name for name in unique_properties if name not in table.c]
        if unknown:
            raise ConfigurationError(
                f"Unique properties {unknown} are not columns of {table.name!r}"
            )
        self.session = session
        self.table = table
        self.unique_properties = tuple(unique_properties)
        self._primary_key = primary_key
        self._pk_names = tuple(column.name for column in primary_key)

    # ------------------------------------------------------------------
    # RowStore protocol

    def read_all(self) -> list[Record]:
        stmt = select(self.table).order_by(*self._primary_key)
        try:
            rows = self.session.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise RowStoreError(f"Reading {self.table.name} failed", operation="read_all") from exc
        return [dict(row) for row in rows]

    def upsert(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
        *,
        only_on_change: bool = False,
    ) -> bool:
        try:
            return self._upsert(records, id_properties, only_on_change=only_on_change)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RowStoreError(f"Writing {self.table.name} failed", operation="upsert") from exc

    def remove(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
    ) -> bool:
        try:
            existing = self.read_all()
            removed = False
            for record in records:
                match = self._find(existing, self._row_values(record), id_properties)
                if match is None:
                    log.debug("No row to remove for %s", dict(record))
                    continue
                self.session.execute(delete(self.table).where(self._pk_clause(match)))
                existing.remove(match)
                removed = True
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RowStoreError(
                f"Removing from {self.table.name} failed", operation="remove"
            ) from exc
        return removed

    def persist(self) -> None:
        try:
            purged = self._purge_empty_rows()
            collapsed = self._collapse_duplicates()
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RowStoreError(
                f"Committing {self.table.name} failed", operation="persist"
            ) from exc
        if purged or collapsed:
            log.info(f"Normalized {self.table.name}: purged={purged}, duplicates={collapsed}")

    def record_edits(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
        *,
        modified_property: str,
        now: datetime | None = None,
    ) -> bool:
        """Upsert locally edited ``records``, stamping ``modified_property`` on each change.

        A record whose values already equal its matched row is left alone, so the
        row keeps its instant and a later timestamp sync does not push it.
        """

        if modified_property not in self.table.c:
            raise ConfigurationError(
                f"Modified property {modified_property!r} is not a column of {self.table.name!r}"
            )
        moment = now or datetime.now(UTC)
        existing = self.read_all()
        edited: list[Record] = []
        for record in records:
            values = self._row_values(record)
            match = self._find(existing, values, id_properties)
            if match is not None and all(
                compare(match.get(name), value)
                for name, value in values.items()
                if name != modified_property and name not in self._pk_names
            ):
                continue
            edited.append({**record, modified_property: moment})
        if not edited:
            log.debug("No local edits to record in %s", self.table.name)
            return False
        log.info(f"Recording {len(edited)} local edits in {self.table.name}")
        return self.upsert(edited, id_properties)

    # ------------------------------------------------------------------

    def _upsert(
        self,
        records: Iterable[Mapping[str, object]],
        id_properties: Sequence[str],
        *,
        only_on_change: bool,
    ) -> bool:
        existing = self.read_all()
        changed = False
        for record in records:
            values = self._row_values(record)
            if all(is_empty(value) for name, value in values.items() if name not in self._pk_names):
                log.debug("Skipping empty record %s", dict(record))
                continue

            match = self._find(existing, values, id_properties)
            if match is None:
                result = self.session.execute(insert(self.table).values(**values))
                inserted = dict(values)
                primary_key = result.inserted_primary_key or ()
                inserted.update(zip(self._pk_names, primary_key, strict=False))
                existing.append(inserted)
                changed = True
                continue

            updates = {
                name: value
                for name, value in values.items()
                if name not in self._pk_names
                and (not only_on_change or not compare(match.get(name), value))
            }
            if only_on_change and not updates:
                continue
            if updates:
                self.session.execute(
                    update(self.table).where(self._pk_clause(match)).values(**updates)
                )
                match.update(updates)
                changed = True
        return changed

    def _row_values(self, record: Mapping[str, object]) -> dict[str, Any]:
        return {
            name: _coerce(self.table.c[name], value)
            for name, value in record.items()
            if name in self.table.c
        }

    def _find(
        self,
        existing: list[Record],
        values: Mapping[str, Any],
        id_properties: Sequence[str],
    ) -> Record | None:
        if all(not is_empty(values.get(name)) for name in self._pk_names):
            for row in existing:
                if all(compare(row.get(name), values[name]) for name in self._pk_names):
                    return row
            return None

        keys = [
            name
            for name in id_properties
            if name in self.table.c and not is_empty(values.get(name))
        ]
        if not keys:
            return None
        for row in existing:
            if all(compare(row.get(name), values[name]) for name in keys):
                return row
        return None

    def _pk_clause(self, row: Mapping[str, object]) -> Any:
        return and_(*(column == row[column.name] for column in self._primary_key))

    def _purge_empty_rows(self) -> int:
        purged = 0
        for row in self.read_all():
            if all(is_empty(value) for name, value in row.items() if name not in self._pk_names):
                self.session.execute(delete(self.table).where(self._pk_clause(row)))
                purged += 1
        return purged

    def _collapse_duplicates(self) -> int:
        if not self.unique_properties:
            return 0
        kept: list[Record] = []
        collapsed = 0
        for row in self.read_all():
            if any(is_empty(row.get(name)) for name in self.unique_properties):
                continue
            duplicate = any(
                all(compare(other.get(name), row.get(name)) for name in self.unique_properties)
                for other in kept
            )
            if duplicate:
                self.session.execute(delete(self.table).where(self._pk_clause(row)))
                collapsed += 1
            else:
                kept.append(row)
        return collapsed


def _coerce(column: Column[Any], value: object) -> object:
    """Adapt a record value to what the column type binds."""

    if is_empty(value) and not isinstance(value, (list, dict)):
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    if python_type is datetime:
        moment = to_instant(value)
        return moment.astimezone(UTC) if moment is not None else value
    if python_type is date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            moment = to_instant(value)
            return moment.date() if moment is not None else value
        return value
    if python_type is bool and isinstance(value, str):
        return as_bool(value)
    if python_type is str and not isinstance(value, str):
        if isinstance(value, (list, tuple, set, frozenset)):
            return ", ".join(str(item) for item in value)
        if isinstance(value, date):
            return value.isoformat()
        return str(value)
    if python_type in (int, float) and isinstance(value, str):
        try:
            return python_type(value.strip())
        except ValueError:
            return value
    return value
