"""Async Cosmos DB REST client that signs every request with the master key."""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog
from pydantic import SecretStr

from relay_connector import is_transient_http_error, with_retry

from .config import DATE_HEADER, VERSION_HEADER, CosmosClientConfig
from .signer import decode_master_key, sign

logger = structlog.get_logger()

PARTITION_KEY_HEADER = "x-ms-documentdb-partitionkey"


class CosmosClient:
    """Issues signed REST calls against a Cosmos DB account endpoint.

    A fresh ``x-ms-date``/``Authorization`` pair is produced for every
    attempt, so retried requests are never rejected for a stale date.
    Transport errors, throttling (429) and 5xx responses are retried; other
    non-2xx responses raise :class:`httpx.HTTPStatusError`.
    """

    def __init__(self, config: CosmosClientConfig, master_key: SecretStr | str) -> None:
        self._config = config
        self._master_key = (
            master_key.get_secret_value() if isinstance(master_key, SecretStr) else master_key
        )
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        # Fail on a bad key at startup rather than on the first request
        decode_master_key(self._master_key)
        self._client = httpx.AsyncClient(
            base_url=self._config.endpoint,
            timeout=httpx.Timeout(self._config.timeout_seconds),
        )
        logger.info("cosmos_client_started", endpoint=self._config.endpoint)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("cosmos_client_stopped")

    async def request(
        self,
        verb: str,
        resource_type: str,
        resource_id: str,
        *,
        path: str | None = None,
        body: dict[str, Any] | None = None,
        partition_key: Any = None,
    ) -> httpx.Response:
        """Send one signed request.

        *path* defaults to ``/<resource_id>``; feed paths (e.g. creating a
        document under a collection) must pass it explicitly.
        """
        assert self._client is not None, "Client not started"
        url = path if path is not None else f"/{resource_id}"

        @with_retry(self._config.retry, retry_when=is_transient_http_error)
        async def _send() -> httpx.Response:
            token, date = sign(verb, resource_type, resource_id, self._master_key)
            headers = {
                "Authorization": token,
                DATE_HEADER: date,
                VERSION_HEADER: self._config.api_version,
                "Accept": "application/json",
            }
            if partition_key is not None:
                headers[PARTITION_KEY_HEADER] = json.dumps([partition_key])
            response = await self._client.request(verb.upper(), url, json=body, headers=headers)
            response.raise_for_status()
            return response

        response = await _send()
        logger.debug(
            "cosmos_request_complete",
            verb=verb.upper(),
            resource_type=resource_type,
            resource_id=resource_id,
            status_code=response.status_code,
        )
        return response

    # ------------------------------------------------------------------
    # Document helpers
    # ------------------------------------------------------------------

    async def get_document(
        self,
        database: str,
        collection: str,
        document_id: str,
        *,
        partition_key: Any = None,
    ) -> dict[str, Any]:
        link = f"dbs/{database}/colls/{collection}/docs/{document_id}"
        response = await self.request("GET", "docs", link, partition_key=partition_key)
        return response.json()

    async def create_document(
        self,
        database: str,
        collection: str,
        document: dict[str, Any],
        *,
        partition_key: Any = None,
    ) -> dict[str, Any]:
        link = f"dbs/{database}/colls/{collection}"
        response = await self.request(
            "POST",
            "docs",
            link,
            path=f"/{link}/docs",
            body=document,
            partition_key=partition_key,
        )
        return response.json()
