"""Type-aware deep equality used to decide whether two records differ.

The comparison tolerates the coercions that show up when the same value lives
in two stores with different type systems:

- ``"12"`` vs ``12`` vs ``12.0``
- ``date`` vs ``datetime`` (compared as instants, optionally truncated)
- ``""`` vs ``None`` vs ``NaN`` (all "empty")
- ordered vs unordered lists of scalars

Everything here is a pure function. Behaviour is selected with keyword options
only, so every sync variant can share the same primitives.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Protocol, TypedDict, Unpack

type EmptyPredicate = Callable[[object], bool]

NUMBER_TYPE = "number"


class CompareOptions(TypedDict, total=False):
    allow_empty: bool
    ignore_order: bool
    is_empty: EmptyPredicate
    granularity: timedelta | None


class Comparator(Protocol):
    """Per-property comparison strategy accepted by ``compare_record``."""

    def __call__(self, a: object, b: object, /, **options: Unpack[CompareOptions]) -> bool: ...


def is_empty(value: object) -> bool:
    """Return whether ``value`` carries no information.

    ``None``, ``NaN``, the empty string and empty lists/tuples/sets/mappings are
    empty. ``0`` and ``False`` are values.
    """

    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, frozenset, Mapping)):
        return len(value) == 0
    return False


def compare(
    a: object,
    b: object,
    *,
    value_type: str | None = None,
    **options: Unpack[CompareOptions],
) -> bool:
    """Return ``True`` when ``a`` and ``b`` hold the same value.

    ``value_type="number"`` forces numeric coercion of both operands. With
    ``allow_empty`` an empty operand matches anything, and composite values may
    differ in size as long as the surplus on ``b`` is empty. ``ignore_order``
    matches scalar list elements regardless of position.
    """

    allow_empty = options.get("allow_empty", False)
    empty = options.get("is_empty", is_empty)

    if _is_date_like(a) and _is_date_like(b):
        granularity = options.get("granularity")
        return _instant(a, granularity) == _instant(b, granularity)  # type: ignore[arg-type]

    if a is None and b is None:
        return True
    if a == "" and b == "":
        return True

    a_empty = empty(a)
    b_empty = empty(b)
    if a_empty != b_empty:
        return allow_empty
    a_composite = _is_composite(a)
    b_composite = _is_composite(b)
    if a_empty and b_empty and not a_composite and not b_composite:
        return True

    if value_type == NUMBER_TYPE or (_is_number(a) and _is_number(b)):
        left = _to_float(a)
        right = _to_float(b)
        if math.isnan(left) and math.isnan(right):
            return True
        return left == right

    if a_composite and b_composite:
        return _compare_composite(a, b, options)  # type: ignore[arg-type]

    return _loosely_equal(a, b)


def compare_record(
    a: Mapping[str, object],
    b: Mapping[str, object],
    names: tuple[str, ...] | list[str] = (),
    *,
    comparators: Mapping[str, Comparator] | None = None,
    **options: Unpack[CompareOptions],
) -> bool:
    """Compare two records over ``names``; an empty ``names`` compares everything."""

    if not names:
        return compare(a, b, **options)

    for name in names:
        comparator = comparators.get(name) if comparators is not None else None
        left = a.get(name)
        right = b.get(name)
        if comparator is not None:
            equal = comparator(left, right, **options)
        else:
            equal = compare(left, right, **options)
        if not equal:
            return False
    return True


def to_instant(value: object) -> datetime | None:
    """Coerce ISO strings, epoch numbers and dates into an aware ``datetime``."""

    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    if _is_number(value):
        seconds = float(value)  # type: ignore[arg-type]
        if math.isnan(seconds):
            return None
        return datetime.fromtimestamp(seconds, tz=UTC)
    return None


def _is_date_like(value: object) -> bool:
    return isinstance(value, date)


def _instant(value: date, granularity: timedelta | None) -> float:
    moment = to_instant(value)
    if moment is None:  # pragma: no cover - dates always convert
        return math.nan
    seconds = moment.timestamp()
    if granularity is None or granularity <= timedelta(0):
        return seconds
    step = granularity.total_seconds()
    return math.floor(seconds / step) * step


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _to_float(value: object) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        value = value.strip()
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return math.nan


def _is_composite(value: object) -> bool:
    return isinstance(value, (list, tuple, Mapping))


def _compare_composite(
    a: list[object] | tuple[object, ...] | Mapping[object, object],
    b: list[object] | tuple[object, ...] | Mapping[object, object],
    options: CompareOptions,
) -> bool:
    a_is_array = not isinstance(a, Mapping)
    b_is_array = not isinstance(b, Mapping)
    if a_is_array != b_is_array:
        return False
    if len(a) == 0 and len(b) == 0:
        return True
    if not options.get("allow_empty", False) and len(a) != len(b):
        return False
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return _compare_mappings(a, b, options)
    return _compare_sequences(list(a), list(b), options)  # type: ignore[arg-type]


def _compare_sequences(a: list[object], b: list[object], options: CompareOptions) -> bool:
    empty = options.get("is_empty", is_empty)
    claimed: set[int] = set()

    for index, item in enumerate(a):
        if not options.get("ignore_order", False) or _is_composite(item):
            if index >= len(b) or not compare(item, b[index], **options):
                return False
            claimed.add(index)
            continue
        match = next(
            (
                position
                for position, candidate in enumerate(b)
                if position not in claimed
                and not _is_composite(candidate)
                and compare(item, candidate, **options)
            ),
            None,
        )
        if match is None:
            return False
        claimed.add(match)

    # surplus elements of b can only exist with allow_empty
    return all(empty(item) for position, item in enumerate(b) if position not in claimed)


def _compare_mappings(
    a: Mapping[object, object],
    b: Mapping[object, object],
    options: CompareOptions,
) -> bool:
    allow_empty = options.get("allow_empty", False)
    empty = options.get("is_empty", is_empty)

    for key, value in a.items():
        if key not in b:
            if allow_empty and empty(value):
                continue
            return False
        if not compare(value, b[key], **options):
            return False

    return all(empty(value) for key, value in b.items() if key not in a)


def _loosely_equal(a: object, b: object) -> bool:
    if a == b:
        return True
    if isinstance(a, str) and _is_number(b):
        return _to_float(a) == _to_float(b)
    if isinstance(b, str) and _is_number(a):
        return _to_float(a) == _to_float(b)
    return False
