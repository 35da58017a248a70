"""Tests for cosmos_auth.client."""

from __future__ import annotations

import json
from urllib.parse import unquote

import httpx
import pytest
import respx

from cosmos_auth.client import CosmosClient
from cosmos_auth.config import CosmosClientConfig
from cosmos_auth.signer import InvalidCredentialError
from relay_connector.config import RetryConfig

ENDPOINT = "https://cosmos.test"


@pytest.fixture
def client_config() -> CosmosClientConfig:
    return CosmosClientConfig(
        endpoint=ENDPOINT,
        timeout_seconds=5.0,
        retry=RetryConfig(max_attempts=3, initial_wait_seconds=0.01, max_wait_seconds=0.05),
    )


class TestCosmosClientLifecycle:
    @pytest.mark.asyncio
    async def test_start_rejects_invalid_key(self, client_config: CosmosClientConfig):
        client = CosmosClient(client_config, "PW:XXX")
        with pytest.raises(InvalidCredentialError):
            await client.start()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_stop_when_not_started(self, client_config: CosmosClientConfig, master_key: str):
        await CosmosClient(client_config, master_key).stop()

    @pytest.mark.asyncio
    async def test_request_not_started_raises(self, client_config: CosmosClientConfig, master_key: str):
        client = CosmosClient(client_config, master_key)
        with pytest.raises(AssertionError, match="Client not started"):
            await client.request("GET", "dbs", "dbs/MyDatabase")


class TestCosmosClientRequests:
    @pytest.mark.asyncio
    @respx.mock
    async def test_get_document_sends_signed_headers(
        self, client_config: CosmosClientConfig, master_key: str
    ):
        route = respx.get(f"{ENDPOINT}/dbs/db/colls/coll/docs/doc-1").respond(
            200, json={"id": "doc-1"}
        )
        client = CosmosClient(client_config, master_key)
        await client.start()
        try:
            doc = await client.get_document("db", "coll", "doc-1", partition_key="pk-1")
        finally:
            await client.stop()

        assert doc == {"id": "doc-1"}
        request = route.calls[0].request
        assert unquote(request.headers["authorization"]).startswith("type=master&ver=1.0&sig=")
        assert request.headers["x-ms-date"].endswith("GMT")
        assert request.headers["x-ms-version"] == "2018-12-31"
        assert json.loads(request.headers["x-ms-documentdb-partitionkey"]) == ["pk-1"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_document_posts_to_feed(
        self, client_config: CosmosClientConfig, master_key: str
    ):
        route = respx.post(f"{ENDPOINT}/dbs/db/colls/coll/docs").respond(201, json={"id": "new"})
        client = CosmosClient(client_config, master_key)
        await client.start()
        try:
            created = await client.create_document("db", "coll", {"id": "new", "n": 1})
        finally:
            await client.stop()

        assert created == {"id": "new"}
        assert json.loads(route.calls[0].request.content) == {"id": "new", "n": 1}

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_raises(self, client_config: CosmosClientConfig, master_key: str):
        route = respx.get(f"{ENDPOINT}/dbs/db").respond(401)
        client = CosmosClient(client_config, master_key)
        await client.start()
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await client.request("GET", "dbs", "dbs/db")
        finally:
            await client.stop()
        # 401 is not a transient status
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_retried_with_fresh_signature(
        self, client_config: CosmosClientConfig, master_key: str
    ):
        route = respx.get(f"{ENDPOINT}/dbs/db").mock(
            side_effect=[httpx.ConnectError("refused"), httpx.Response(200, json={"id": "db"})]
        )
        client = CosmosClient(client_config, master_key)
        await client.start()
        try:
            response = await client.request("GET", "dbs", "dbs/db")
        finally:
            await client.stop()

        assert response.status_code == 200
        assert route.call_count == 2
        for call in route.calls:
            assert "authorization" in call.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_service_unavailable_is_retried(
        self, client_config: CosmosClientConfig, master_key: str
    ):
        route = respx.get(f"{ENDPOINT}/dbs/db").mock(
            side_effect=[httpx.Response(503), httpx.Response(200, json={"id": "db"})]
        )
        client = CosmosClient(client_config, master_key)
        await client.start()
        try:
            response = await client.request("GET", "dbs", "dbs/db")
        finally:
            await client.stop()

        assert response.json() == {"id": "db"}
        assert route.call_count == 2
