"""Cosmos DB signing configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings

from relay_connector import RetryConfig

DATE_HEADER = "x-ms-date"
VERSION_HEADER = "x-ms-version"


class CosmosAuthConfig(BaseSettings):
    """Inputs for the authorization header service.

    String fields accept ``%message{key}`` expressions, resolved against
    message metadata when the service runs.
    """

    model_config = {"env_prefix": "COSMOS_"}

    http_verb: str = Field(default="GET", description="HTTP verb of the signed request (e.g. PUT)")
    resource_type: str = Field(default="docs", description="Cosmos resource type (e.g. colls, docs)")
    resource_id: str = Field(
        default="",
        description="Resource link, case-sensitive (e.g. dbs/MyDatabase/colls/MyCollection)",
    )
    master_key: SecretStr | None = Field(
        default=None,
        description="Base64 account master key",
    )
    target_key: str = Field(
        default="Authorization",
        description="Metadata key that receives the encoded authorization token",
    )
    date_key: str = Field(
        default=DATE_HEADER,
        description="Metadata key that receives the HTTP-date the token was signed with",
    )


class CosmosClientConfig(BaseSettings):
    """Cosmos DB REST endpoint settings."""

    model_config = {"env_prefix": "COSMOS_CLIENT_"}

    endpoint: str = Field(
        default="https://localhost:8081",
        description="Account endpoint (e.g. https://myaccount.documents.azure.com)",
    )
    api_version: str = Field(default="2018-12-31", description="Value sent as x-ms-version")
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    retry: RetryConfig = Field(default_factory=RetryConfig)
