"""Office 365 mail consumer configuration loaded from environment variables."""

from __future__ import annotations

import codecs

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from cosmos_auth import CosmosAuthConfig
from relay_connector import ConnectorConfig

DEFAULT_FOLDER = "inbox"
DEFAULT_FILTER = "isRead eq false"


class GraphConfig(BaseSettings):
    """Microsoft Graph app registration and endpoint settings."""

    model_config = {"env_prefix": "GRAPH_"}

    tenant_id: str = Field(description="Azure AD tenant ID")
    client_id: str = Field(description="App registration (client) ID")
    client_secret: SecretStr = Field(description="App registration client secret")
    base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Graph API base URL",
    )
    scope: str = Field(
        default="https://graph.microsoft.com/.default",
        description="OAuth2 scope requested with the client-credentials grant",
    )
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    page_size: int = Field(default=50, description="Messages requested per page ($top)")


class MailboxConfig(BaseSettings):
    """Which mailbox to poll and what to do with consumed mail."""

    model_config = {"env_prefix": "MAILBOX_"}

    username: str = Field(description="Office 365 user whose mailbox is polled")
    delete: bool = Field(
        default=False,
        description="Delete messages after reading instead of marking them as read",
    )
    folder: str = Field(default=DEFAULT_FOLDER, description="Mail folder to poll")
    filter: str = Field(
        default=DEFAULT_FILTER,
        description="OData $filter for messages; ignored when search is set",
    )
    search: str | None = Field(
        default=None,
        description="Graph $search query; takes precedence over filter",
    )
    charset: str = Field(default="utf-8", description="Charset used to encode the body payload")
    poll_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between mailbox poll cycles",
    )

    @field_validator("charset")
    @classmethod
    def validate_charset(cls, v: str) -> str:
        """Reject charset names Python has no codec for."""
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"unknown charset: {v}") from None
        return v


class O365ConnectorConfig(ConnectorConfig):
    """Mail consumer config.

    Extends ConnectorConfig (inherits kafka, retry, logging, health_port).
    """

    graph: GraphConfig = Field(default_factory=GraphConfig)
    mailbox: MailboxConfig = Field(default_factory=MailboxConfig)
    cosmos_auth_enabled: bool = Field(
        default=False,
        description="Stamp Cosmos DB auth headers (COSMOS_* settings) on each message",
    )
    cosmos_auth: CosmosAuthConfig = Field(default_factory=CosmosAuthConfig)
