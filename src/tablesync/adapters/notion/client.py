"""HTTP client for a single Notion database."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from tablesync.adapters.http_resilience import ResilientClient
from tablesync.domain.sync.errors import TransportError

from .schema import NotionErrorPayload, NotionPage, NotionQueryResponse
from .translator import draft_to_request, page_to_remote_item

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from tablesync.config.http_resilience import ResilienceConfig
    from tablesync.config.notion import NotionConfig
    from tablesync.domain.sync.records import RemoteDraft, RemoteItem

log = getLogger(__name__)

NOTION_PAGE_SIZE = 100


class NotionAPIError(TransportError):
    """Raised when the Notion API rejects a request or returns an unexpected payload."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation)
        self.status = status
        self.code = code


class NotionClient:
    """Remote Client over the pages of one Notion database."""

    def __init__(
        self,
        *,
        config: NotionConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        page_size: int = NOTION_PAGE_SIZE,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._page_size = page_size

    def query(self, filter: Mapping[str, Any] | None = None) -> list[RemoteItem]:  # noqa: A002
        return asyncio.run(self._query_async(filter))

    def create(self, draft: RemoteDraft) -> RemoteItem:
        body = draft_to_request(draft, self._config.database_id)
        return asyncio.run(self._page_request("create", "POST", "pages", json=body))

    def update(self, remote_id: str, properties: Mapping[str, Any]) -> RemoteItem:
        body = {"properties": dict(properties)}
        return asyncio.run(self._page_request("update", "PATCH", f"pages/{remote_id}", json=body))

    def delete(self, remote_id: str) -> RemoteItem:
        return asyncio.run(
            self._page_request("delete", "PATCH", f"pages/{remote_id}", json={"archived": True})
        )

    def get_by_id(self, remote_id: str) -> RemoteItem | None:
        return asyncio.run(self._get_by_id_async(remote_id))

    # ------------------------------------------------------------------

    async def _query_async(self, filter_: Mapping[str, Any] | None) -> list[RemoteItem]:
        items: list[RemoteItem] = []
        cursor: str | None = None
        path = f"databases/{self._config.database_id}/query"

        async with self._client_factory(self._resilience) as client:
            while True:
                body: dict[str, Any] = {"page_size": self._page_size}
                if cursor is not None:
                    body["start_cursor"] = cursor
                if filter_:
                    body["filter"] = dict(filter_)
                response = await client.post(path, json=body)
                payload = self._checked_payload(response, "query")
                try:
                    page = NotionQueryResponse.model_validate(payload)
                except ValidationError as exc:
                    raise NotionAPIError(
                        "Unexpected Notion query payload", operation="query"
                    ) from exc

                items.extend(
                    page_to_remote_item(result) for result in page.results if not result.is_deleted
                )
                if not page.has_more or page.next_cursor is None:
                    break
                cursor = page.next_cursor

        log.debug(f"Queried {len(items)} pages from Notion database {self._config.database_id}")
        return items

    async def _page_request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json: dict[str, Any],
    ) -> RemoteItem:
        async with self._client_factory(self._resilience) as client:
            response = await client.request(method, path, json=json)
        return self._to_item(self._checked_payload(response, operation), operation)

    async def _get_by_id_async(self, remote_id: str) -> RemoteItem | None:
        async with self._client_factory(self._resilience) as client:
            response = await client.get(f"pages/{remote_id}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        payload = self._checked_payload(response, "get_by_id")
        try:
            page = NotionPage.model_validate(payload)
        except ValidationError as exc:
            raise NotionAPIError("Unexpected Notion page payload", operation="get_by_id") from exc
        if page.is_deleted:
            return None
        return page_to_remote_item(page)

    def _checked_payload(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            if isinstance(payload, dict) and payload.get("object") == "error":
                error = NotionErrorPayload.model_validate(payload)
                log.error(f"Notion API error {error.status} {error.code}: {error.message}")
                raise NotionAPIError(
                    error.message, status=error.status, code=error.code, operation=operation
                )
            raise NotionAPIError(
                f"Notion request failed with HTTP {response.status_code}",
                status=response.status_code,
                operation=operation,
            )

        if not isinstance(payload, dict):
            raise NotionAPIError("Unexpected Notion response payload", operation=operation)
        return payload

    def _to_item(self, payload: dict[str, Any], operation: str) -> RemoteItem:
        try:
            return page_to_remote_item(payload)
        except (ValidationError, ValueError) as exc:
            raise NotionAPIError("Unexpected Notion page payload", operation=operation) from exc
