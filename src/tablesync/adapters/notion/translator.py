"""Translate Notion page payloads into remote items and drafts into requests."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from tablesync.domain.sync.records import RemoteItem

from .schema import NotionPage, NotionPropertyValue

if TYPE_CHECKING:
    from tablesync.domain.sync.records import RemoteDraft

log = getLogger(__name__)

type PageInput = NotionPage | Mapping[str, Any]


def _ensure_page(page: PageInput) -> NotionPage:
    if isinstance(page, NotionPage):
        return page
    return NotionPage.model_validate(page)


def page_to_remote_item(page: PageInput) -> RemoteItem:
    notion_page = _ensure_page(page)
    properties = {
        name: decode_property(value) for name, value in notion_page.properties.items()
    }
    return RemoteItem(
        remote_id=notion_page.id,
        properties=properties,
        last_modified=notion_page.last_edited_time,
        url=notion_page.url,
    )


def draft_to_request(draft: RemoteDraft, database_id: str) -> dict[str, Any]:
    """Build a ``POST /pages`` body; ``draft.extra`` may override the parent."""

    body: dict[str, Any] = {
        "parent": {"database_id": database_id},
        "properties": dict(draft.properties),
    }
    body.update(draft.extra)
    return body


def decode_property(value: NotionPropertyValue | Mapping[str, Any]) -> object:
    """Return the plain Python value of one page property."""

    if isinstance(value, NotionPropertyValue):
        kind = value.type
        payload = value.payload
    else:
        kind = str(value.get("type", ""))
        payload = value.get(kind)
    return _decode(kind, payload)


def _decode(kind: str, payload: Any) -> object:  # noqa: PLR0911
    match kind:
        case "title" | "rich_text":
            return _plain_text(payload)
        case "number" | "checkbox" | "url" | "email" | "phone_number" | "string" | "boolean":
            return payload
        case "select" | "status":
            return payload.get("name") if isinstance(payload, Mapping) else None
        case "multi_select":
            return [option.get("name") for option in payload or () if isinstance(option, Mapping)]
        case "date":
            return _decode_date(payload)
        case "created_time" | "last_edited_time":
            return _parse_datetime(payload)
        case "formula":
            return _decode_nested(payload)
        case "rollup":
            return _decode_rollup(payload)
        case "relation":
            return [entry.get("id") for entry in payload or () if isinstance(entry, Mapping)]
        case "people":
            return [_person_name(person) for person in payload or () if isinstance(person, Mapping)]
        case "created_by" | "last_edited_by":
            return _person_name(payload) if isinstance(payload, Mapping) else None
        case "files":
            return [_file_url(item) for item in payload or () if isinstance(item, Mapping)]
        case "unique_id":
            return _decode_unique_id(payload)
        case _:
            log.debug("Unsupported Notion property type %s", kind)
            return None


def _plain_text(fragments: Any) -> str:
    if not fragments:
        return ""
    parts: list[str] = []
    for fragment in fragments:
        if not isinstance(fragment, Mapping):
            continue
        text = fragment.get("plain_text")
        if text is None:
            text = (fragment.get("text") or {}).get("content", "")
        parts.append(str(text))
    return "".join(parts)


def _decode_date(payload: Any) -> date | datetime | None:
    if not isinstance(payload, Mapping):
        return None
    return _parse_date_or_datetime(payload.get("start"))


def _parse_date_or_datetime(value: object) -> date | datetime | None:
    if not isinstance(value, str) or not value:
        return None
    if len(value) == 10:
        return date.fromisoformat(value)
    return _parse_datetime(value)


def _parse_datetime(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    return datetime.fromisoformat(text)


def _decode_nested(payload: Any) -> object:
    if not isinstance(payload, Mapping):
        return None
    kind = str(payload.get("type", ""))
    return _decode(kind, payload.get(kind))


def _decode_rollup(payload: Any) -> object:
    if not isinstance(payload, Mapping):
        return None
    kind = payload.get("type")
    if kind == "array":
        return [decode_property(entry) for entry in payload.get("array") or ()]
    return _decode_nested(payload)


def _person_name(person: Mapping[str, Any]) -> str | None:
    return person.get("name") or person.get("id")


def _file_url(item: Mapping[str, Any]) -> str | None:
    kind = item.get("type")
    body = item.get(kind) if isinstance(kind, str) else None
    if isinstance(body, Mapping):
        return body.get("url")
    return item.get("name")


def _decode_unique_id(payload: Any) -> object:
    if not isinstance(payload, Mapping):
        return None
    number = payload.get("number")
    prefix = payload.get("prefix")
    if prefix:
        return f"{prefix}-{number}"
    return number
