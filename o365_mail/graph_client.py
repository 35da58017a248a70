"""Async Microsoft Graph mail client.

REST calls go through ``httpx``; bearer tokens come from an
``azure-identity`` client-secret credential.  The credential is
synchronous, so token acquisition runs in ``asyncio.to_thread()``.
"""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from azure.core.credentials import TokenCredential
from azure.identity import ClientSecretCredential

from relay_connector import RetryConfig, is_transient_http_error, with_retry

from .config import GraphConfig

logger = structlog.get_logger()

CONSISTENCY_LEVEL_HEADER = "ConsistencyLevel"
NEXT_LINK = "@odata.nextLink"


class AsyncGraphClient:
    """The handful of Graph mail operations the consumer needs."""

    def __init__(
        self,
        config: GraphConfig,
        retry: RetryConfig,
        *,
        credential: TokenCredential | None = None,
    ) -> None:
        self._config = config
        self._retry = retry
        self._credential = credential
        self._owns_credential = credential is None
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._credential is None:
            self._credential = ClientSecretCredential(
                tenant_id=self._config.tenant_id,
                client_id=self._config.client_id,
                client_secret=self._config.client_secret.get_secret_value(),
            )
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=httpx.Timeout(self._config.timeout_seconds),
        )
        logger.info("graph_client_started", base_url=self._config.base_url)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._owns_credential and self._credential is not None:
            await asyncio.to_thread(self._credential.close)
            self._credential = None
        logger.info("graph_client_stopped")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _bearer_token(self) -> str:
        assert self._credential is not None, "Client not started"
        access_token = await asyncio.to_thread(self._credential.get_token, self._config.scope)
        return access_token.token

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Send one authenticated request; return the JSON body, if any.

        Transport errors, throttling (429) and 5xx responses are retried;
        other error statuses raise :class:`httpx.HTTPStatusError` at once.
        """
        assert self._client is not None, "Client not started"

        @with_retry(self._retry, retry_when=is_transient_http_error)
        async def _send() -> httpx.Response:
            request_headers = {"Authorization": f"Bearer {await self._bearer_token()}"}
            request_headers.update(headers or {})
            response = await self._client.request(
                method, url, params=params, headers=request_headers, json=json
            )
            response.raise_for_status()
            return response

        response = await _send()
        if not response.content:
            return None
        return response.json()

    async def _get_all(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """GET a collection, following ``@odata.nextLink`` to the last page."""
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        while next_url is not None:
            page = await self._request("GET", next_url, params=params, headers=headers) or {}
            items.extend(page.get("value", []))
            next_url = page.get(NEXT_LINK)
            # nextLink already carries the query string
            params = None
        return items

    # ------------------------------------------------------------------
    # Mail operations
    # ------------------------------------------------------------------

    @staticmethod
    def _user_path(username: str) -> str:
        return f"/users/{quote(username, safe='@')}"

    @classmethod
    def _message_path(cls, username: str, message_id: str) -> str:
        return f"{cls._user_path(username)}/messages/{quote(message_id, safe='')}"

    async def list_messages(
        self,
        username: str,
        folder: str,
        *,
        filter: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        """List messages in *folder*, all pages.

        With *search* set the query uses ``$search`` (value wrapped in
        double quotes, ``ConsistencyLevel: eventual``) and *filter* is
        ignored.
        """
        params: dict[str, str] = {"$top": str(self._config.page_size)}
        headers: dict[str, str] = {}
        if search:
            headers[CONSISTENCY_LEVEL_HEADER] = "eventual"
            params["$search"] = f'"{search}"'
        elif filter:
            params["$filter"] = filter

        url = f"{self._user_path(username)}/mailFolders/{quote(folder, safe='')}/messages"
        messages = await self._get_all(url, params=params, headers=headers)
        logger.debug("graph_messages_listed", username=username, folder=folder, count=len(messages))
        return messages

    async def list_attachments(self, username: str, message_id: str) -> list[dict[str, Any]]:
        url = f"{self._message_path(username, message_id)}/attachments"
        return await self._get_all(url)

    async def get_internet_headers(self, username: str, message_id: str) -> list[dict[str, str]]:
        """Internet message headers must be requested explicitly with ``$select``."""
        url = self._message_path(username, message_id)
        body = await self._request("GET", url, params={"$select": "internetMessageHeaders"}) or {}
        return body.get("internetMessageHeaders") or []

    async def mark_as_read(self, username: str, message_id: str) -> None:
        # PATCH sends only the changed property
        url = self._message_path(username, message_id)
        await self._request("PATCH", url, json={"isRead": True})

    async def delete_message(self, username: str, message_id: str) -> None:
        url = self._message_path(username, message_id)
        await self._request("DELETE", url)
