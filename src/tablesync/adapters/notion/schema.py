"""Pydantic models describing the Notion database API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotionBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NotionPropertyValue(BaseModel):
    """One property value of a page; the payload sits under the key named by ``type``."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str

    @property
    def payload(self) -> Any:
        extras = self.__pydantic_extra__ or {}
        return extras.get(self.type)


class NotionPage(NotionBaseModel):
    object: str = "page"
    id: str
    created_time: datetime | None = None
    last_edited_time: datetime | None = None
    archived: bool = False
    in_trash: bool = False
    url: str | None = None
    properties: dict[str, NotionPropertyValue] = Field(default_factory=dict)

    @property
    def is_deleted(self) -> bool:
        return self.archived or self.in_trash


class NotionQueryResponse(NotionBaseModel):
    object: str = "list"
    results: list[NotionPage] = Field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False


class NotionErrorPayload(NotionBaseModel):
    object: str = "error"
    status: int
    code: str
    message: str
