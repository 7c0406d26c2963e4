from __future__ import annotations

import logging
from datetime import UTC, date, datetime

import pytest

from tablesync.config.errors import ConfigurationError
from tablesync.domain.sync.errors import InvalidSyncSchemaError
from tablesync.domain.sync.properties import (
    PropertySpec,
    PropertyType,
    SyncSchema,
    as_list,
    encode_properties,
)


def test_property_spec_coerces_type_strings() -> None:
    spec = PropertySpec("tags", "multi_value")  # type: ignore[arg-type]

    assert spec.type is PropertyType.MULTI_VALUE


def test_property_spec_rejects_unknown_types() -> None:
    with pytest.raises(InvalidSyncSchemaError):
        PropertySpec("tags", "colour")  # type: ignore[arg-type]


def test_invalid_schema_error_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        PropertySpec("")


def test_multi_value_comparison_ignores_order_and_splits_strings() -> None:
    compare_tags = PropertySpec("tags", PropertyType.MULTI_VALUE).strategy.compare

    assert compare_tags(["b", "a"], ["a", "b"])
    assert compare_tags("a, b", ["b", "a"])
    assert not compare_tags(["a"], ["a", "b"])


def test_number_comparison_coerces_strings() -> None:
    compare_amount = PropertySpec("amount", PropertyType.NUMBER).strategy.compare

    assert compare_amount("4.50", 4.5)
    assert not compare_amount("4.51", 4.5)


def test_date_comparison_parses_iso_strings() -> None:
    compare_due = PropertySpec("due", PropertyType.DATE).strategy.compare

    assert compare_due("2024-03-01", date(2024, 3, 1))
    assert compare_due("2024-03-01T10:00:00Z", datetime(2024, 3, 1, 10, tzinfo=UTC))
    assert not compare_due("2024-03-02", date(2024, 3, 1))


def test_boolean_comparison_reads_unset_as_false() -> None:
    compare_done = PropertySpec("done", PropertyType.BOOLEAN).strategy.compare

    assert compare_done(None, False)
    assert compare_done("yes", True)
    assert not compare_done(None, True)


def test_as_list_drops_empty_entries() -> None:
    assert as_list(" a, ,b ") == ["a", "b"]
    assert as_list(None) == []
    assert as_list(["a", "", None]) == ["a"]
    assert as_list(3) == [3]


def test_encode_properties_builds_notion_payloads() -> None:
    specs = (
        PropertySpec("name", PropertyType.TITLE),
        PropertySpec("note", PropertyType.TEXT),
        PropertySpec("amount", PropertyType.NUMBER),
        PropertySpec("status", PropertyType.SELECT),
        PropertySpec("tags", PropertyType.MULTI_VALUE),
        PropertySpec("due", PropertyType.DATE),
        PropertySpec("done", PropertyType.BOOLEAN),
    )
    record = {
        "name": "Task",
        "note": "Details",
        "amount": "4.5",
        "status": "Open",
        "tags": "a, b",
        "due": date(2024, 3, 1),
        "done": "no",
    }

    payload = encode_properties(record, specs)

    assert payload == {
        "name": {"title": [{"type": "text", "text": {"content": "Task"}}]},
        "note": {"rich_text": [{"type": "text", "text": {"content": "Details"}}]},
        "amount": {"number": 4.5},
        "status": {"select": {"name": "Open"}},
        "tags": {"multi_select": [{"name": "a"}, {"name": "b"}]},
        "due": {"date": {"start": "2024-03-01"}},
        "done": {"checkbox": False},
    }


def test_empty_values_encode_as_clearing_values() -> None:
    specs = (
        PropertySpec("note", PropertyType.TEXT),
        PropertySpec("amount", PropertyType.NUMBER),
        PropertySpec("status", PropertyType.SELECT),
        PropertySpec("tags", PropertyType.MULTI_VALUE),
        PropertySpec("due", PropertyType.DATE),
    )

    payload = encode_properties({}, specs)

    assert payload == {
        "note": {"rich_text": []},
        "amount": {"number": None},
        "status": {"select": None},
        "tags": {"multi_select": []},
        "due": {"date": None},
    }


def test_encode_properties_can_leave_out_empty_values() -> None:
    specs = (PropertySpec("note"), PropertySpec("amount", PropertyType.NUMBER))

    assert encode_properties({"amount": 2}, specs, include_empty=False) == {
        "amount": {"number": 2}
    }


def test_date_ranges_keep_end_and_time_zone() -> None:
    spec = PropertySpec("due", PropertyType.DATE)

    encoded = spec.encode(
        {"start": date(2024, 3, 1), "end": date(2024, 3, 3), "time_zone": "Europe/Berlin"}
    )

    assert encoded == {
        "date": {"start": "2024-03-01", "end": "2024-03-03", "time_zone": "Europe/Berlin"}
    }


def test_schema_groups_and_comparators() -> None:
    schema = SyncSchema(
        id_properties=("name",),
        local_properties=(PropertySpec("amount", PropertyType.NUMBER),),
        remote_properties=(PropertySpec("due", PropertyType.DATE),),
    )

    assert schema.local_names == ("amount",)
    assert schema.remote_names == ("due",)
    assert schema.property_names == ("name", "amount", "due")
    assert set(schema.comparators) == {"amount", "due"}


def test_schema_validation_requires_ids_and_properties() -> None:
    with pytest.raises(InvalidSyncSchemaError):
        SyncSchema(id_properties=(), local_properties=(PropertySpec("a"),)).validate()
    with pytest.raises(InvalidSyncSchemaError):
        SyncSchema(id_properties=("name",)).validate()

    SyncSchema(id_properties=(), local_properties=(PropertySpec("a"),)).validate(
        require_id_properties=False
    )


def test_schema_validation_warns_about_overlapping_groups(
    caplog: pytest.LogCaptureFixture,
) -> None:
    schema = SyncSchema(
        id_properties=("name",),
        local_properties=(PropertySpec("status"),),
        remote_properties=(PropertySpec("status", PropertyType.SELECT),),
    )

    with caplog.at_level(logging.WARNING):
        schema.validate()

    assert "status" in caplog.text
    assert schema.all_properties == (PropertySpec("status", PropertyType.SELECT),)
