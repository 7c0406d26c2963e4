"""Property typing for sync schemas.

Each ``PropertyType`` is mapped once to a ``PropertyStrategy`` that knows how to
compare two values of that type and how to encode a local value into the
remote payload shape (Notion page property objects).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any, Unpack

from .equality import NUMBER_TYPE, compare, is_empty, to_instant
from .errors import InvalidSyncSchemaError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .equality import Comparator, CompareOptions

log = getLogger(__name__)

type Encoder = Callable[[object], dict[str, Any]]

_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "no", "n", "0", "off"})


class PropertyType(StrEnum):
    TEXT = "text"
    TITLE = "title"
    NUMBER = "number"
    SELECT = "select"
    MULTI_VALUE = "multi_value"
    DATE = "date"
    BOOLEAN = "boolean"


@dataclass(frozen=True, slots=True)
class PropertyStrategy:
    compare: Comparator
    encode: Encoder


# ---------------------------------------------------------------------------
# Value coercion


def as_list(value: object) -> list[object]:
    """Coerce a multi-value cell into a list (comma separated strings are split)."""

    if is_empty(value):
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [item for item in value if not is_empty(item)]
    return [value]


def as_bool(value: object) -> object:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return value


def _as_date_value(value: object) -> object:
    if isinstance(value, (date, str)):
        moment = to_instant(value)
        if moment is not None:
            return moment
    return value


# ---------------------------------------------------------------------------
# Comparison


def _compare_plain(a: object, b: object, /, **options: Unpack[CompareOptions]) -> bool:
    return compare(a, b, **options)


def _compare_number(a: object, b: object, /, **options: Unpack[CompareOptions]) -> bool:
    return compare(a, b, value_type=NUMBER_TYPE, **options)


def _compare_multi_value(a: object, b: object, /, **options: Unpack[CompareOptions]) -> bool:
    merged: CompareOptions = {**options, "ignore_order": True}
    return compare(as_list(a), as_list(b), **merged)


def _compare_date(a: object, b: object, /, **options: Unpack[CompareOptions]) -> bool:
    return compare(_as_date_value(a), _as_date_value(b), **options)


def _compare_boolean(a: object, b: object, /, **options: Unpack[CompareOptions]) -> bool:
    left = as_bool(a)
    right = as_bool(b)
    # an unset checkbox reads as False on the remote side
    if (is_empty(left) and right is False) or (is_empty(right) and left is False):
        return True
    return compare(left, right, **options)


# ---------------------------------------------------------------------------
# Encoding


def _rich_text(value: object) -> list[dict[str, Any]]:
    if is_empty(value):
        return []
    return [{"type": "text", "text": {"content": str(value)}}]


def _encode_text(value: object) -> dict[str, Any]:
    return {"rich_text": _rich_text(value)}


def _encode_title(value: object) -> dict[str, Any]:
    return {"title": _rich_text(value)}


def _encode_number(value: object) -> dict[str, Any]:
    if is_empty(value):
        return {"number": None}
    if isinstance(value, bool):
        return {"number": int(value)}
    if isinstance(value, (int, float)):
        return {"number": value}
    try:
        return {"number": float(str(value).strip())}
    except ValueError:
        log.warning("Cannot encode %r as a number; clearing the property", value)
        return {"number": None}


def _encode_select(value: object) -> dict[str, Any]:
    if is_empty(value):
        return {"select": None}
    return {"select": {"name": str(value)}}


def _encode_multi_value(value: object) -> dict[str, Any]:
    return {"multi_select": [{"name": str(item)} for item in as_list(value)]}


def _iso(value: object) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    moment = to_instant(value)
    return moment.isoformat() if moment is not None else None


def _encode_date(value: object) -> dict[str, Any]:
    if is_empty(value):
        return {"date": None}
    if isinstance(value, Mapping):
        start = _iso(value.get("start"))
        if start is None:
            return {"date": None}
        payload: dict[str, Any] = {"start": start}
        end = _iso(value.get("end"))
        if end is not None:
            payload["end"] = end
        time_zone = value.get("time_zone")
        if time_zone:
            payload["time_zone"] = str(time_zone)
        return {"date": payload}
    start = _iso(value)
    if start is None:
        log.warning("Cannot encode %r as a date; clearing the property", value)
        return {"date": None}
    return {"date": {"start": start}}


def _encode_boolean(value: object) -> dict[str, Any]:
    coerced = as_bool(value)
    if is_empty(coerced):
        return {"checkbox": False}
    return {"checkbox": bool(coerced)}


STRATEGIES: Mapping[PropertyType, PropertyStrategy] = {
    PropertyType.TEXT: PropertyStrategy(_compare_plain, _encode_text),
    PropertyType.TITLE: PropertyStrategy(_compare_plain, _encode_title),
    PropertyType.NUMBER: PropertyStrategy(_compare_number, _encode_number),
    PropertyType.SELECT: PropertyStrategy(_compare_plain, _encode_select),
    PropertyType.MULTI_VALUE: PropertyStrategy(_compare_multi_value, _encode_multi_value),
    PropertyType.DATE: PropertyStrategy(_compare_date, _encode_date),
    PropertyType.BOOLEAN: PropertyStrategy(_compare_boolean, _encode_boolean),
}


@dataclass(frozen=True, slots=True)
class PropertySpec:
    name: str
    type: PropertyType = PropertyType.TEXT

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidSyncSchemaError("Property name must not be empty")
        try:
            object.__setattr__(self, "type", PropertyType(self.type))
        except ValueError as exc:
            raise InvalidSyncSchemaError(
                f"Unknown property type {self.type!r} for {self.name!r}"
            ) from exc

    @property
    def strategy(self) -> PropertyStrategy:
        return STRATEGIES[self.type]

    def encode(self, value: object) -> dict[str, Any]:
        return self.strategy.encode(value)


def encode_properties(
    record: Mapping[str, object],
    specs: Iterable[PropertySpec],
    *,
    include_empty: bool = True,
) -> dict[str, dict[str, Any]]:
    """Encode ``record`` into remote property objects keyed by property name.

    Empty values encode as clearing values when ``include_empty`` is set and are
    left out of the payload otherwise.
    """

    payload: dict[str, dict[str, Any]] = {}
    for spec in specs:
        value = record.get(spec.name)
        if not include_empty and is_empty(value):
            continue
        payload[spec.name] = spec.encode(value)
    return payload


@dataclass(frozen=True, slots=True)
class SyncSchema:
    """Which properties identify a record and which side owns each property.

    ``local_properties`` are authoritative locally and pushed; ``remote_properties``
    are authoritative remotely and pulled. ``remote_id_property`` and
    ``last_modified_property`` optionally name local columns that receive the
    remote identifier and modification instant after a write.
    """

    id_properties: tuple[str, ...]
    local_properties: tuple[PropertySpec, ...] = ()
    remote_properties: tuple[PropertySpec, ...] = ()
    remote_id_property: str | None = None
    last_modified_property: str | None = None
    comparators: Mapping[str, Comparator] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id_properties", tuple(self.id_properties))
        object.__setattr__(self, "local_properties", tuple(self.local_properties))
        object.__setattr__(self, "remote_properties", tuple(self.remote_properties))
        comparators: dict[str, Comparator] = {}
        for spec in (*self.local_properties, *self.remote_properties):
            comparators[spec.name] = spec.strategy.compare
        object.__setattr__(self, "comparators", comparators)

    @property
    def local_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.local_properties)

    @property
    def remote_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.remote_properties)

    @property
    def all_properties(self) -> tuple[PropertySpec, ...]:
        """Both groups, de-duplicated by name (the remote declaration wins)."""

        by_name: dict[str, PropertySpec] = {}
        for spec in (*self.local_properties, *self.remote_properties):
            by_name[spec.name] = spec
        return tuple(by_name.values())

    @property
    def property_names(self) -> tuple[str, ...]:
        """Every name a snapshot needs: IDs first, then both groups."""

        names = dict.fromkeys(self.id_properties)
        names.update(dict.fromkeys(spec.name for spec in self.all_properties))
        return tuple(names)

    def validate(self, *, require_id_properties: bool = True) -> None:
        if require_id_properties and not self.id_properties:
            raise InvalidSyncSchemaError("Sync schema requires at least one ID property")
        if not self.local_properties and not self.remote_properties:
            raise InvalidSyncSchemaError(
                "Sync schema requires local or remote authoritative properties"
            )
        overlap = set(self.local_names) & set(self.remote_names)
        if overlap:
            log.warning(
                "Properties declared in both groups resolve as pulls: %s",
                ", ".join(sorted(overlap)),
            )
