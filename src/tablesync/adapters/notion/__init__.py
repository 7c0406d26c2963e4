"""Public interface for the Notion adapter."""

from __future__ import annotations

from .client import NotionAPIError, NotionClient
from .schema import NotionPage, NotionQueryResponse
from .translator import decode_property, draft_to_request, page_to_remote_item

__all__ = [
    "NotionAPIError",
    "NotionClient",
    "NotionPage",
    "NotionQueryResponse",
    "decode_property",
    "draft_to_request",
    "page_to_remote_item",
]
