"""Data models for the relay connector framework."""

from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ExpressionError

_EXPRESSION = re.compile(r"%message\{([^}]+)\}")


class ConnectorStatus(str, Enum):
    """Runtime status of a connector instance."""

    STARTING = "starting"
    RUNNING = "running"
    DEGRADED = "degraded"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Payload(BaseModel):
    """One named payload of a :class:`RelayMessage`."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    content: bytes = Field(default=b"", description="Raw payload bytes")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Per-payload headers (e.g. attachment filename, content type)",
    )


class RelayMessage(BaseModel):
    """In-flight message passed from a connector through services to Kafka.

    A message holds one or more named payloads (an email body and its
    attachments, for instance) and a flat string metadata map.  Exactly
    one payload is *current*; :attr:`content` reads from it.
    """

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    message_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique identifier for this message",
    )
    payloads: dict[str, Payload] = Field(
        default_factory=dict,
        description="Named payloads carried by the message",
    )
    current_payload_id: str | None = Field(
        default=None,
        description="Key of the payload that content operations act on",
    )
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Message metadata (email headers, auth headers, correlation IDs, etc.)",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when the connector created this message (UTC)",
    )

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    def add_payload(self, payload_id: str, content: bytes) -> Payload:
        """Add (or replace) a payload and make it current."""
        payload = Payload(content=content)
        self.payloads[payload_id] = payload
        self.current_payload_id = payload_id
        return payload

    def switch_payload(self, payload_id: str) -> None:
        if payload_id not in self.payloads:
            raise KeyError(f"No payload {payload_id!r}")
        self.current_payload_id = payload_id

    def payload(self, payload_id: str | None = None) -> Payload:
        """Return the named payload, or the current one."""
        key = payload_id if payload_id is not None else self.current_payload_id
        if key is None or key not in self.payloads:
            raise KeyError(f"No payload {key!r}")
        return self.payloads[key]

    def add_payload_header(self, key: str, value: str, *, payload_id: str | None = None) -> None:
        self.payload(payload_id).headers[key] = value

    @property
    def content(self) -> bytes:
        if self.current_payload_id is None:
            return b""
        return self.payload().content

    # ------------------------------------------------------------------
    # Metadata expressions
    # ------------------------------------------------------------------

    def resolve(self, expression: str | None) -> str | None:
        """Replace every ``%message{key}`` in *expression* with metadata.

        Plain strings are returned unchanged.  Raises
        :class:`ExpressionError` when a referenced key is not set.
        """
        if expression is None:
            return None

        def _lookup(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in self.metadata:
                raise ExpressionError(expression, key)
            return self.metadata[key]

        return _EXPRESSION.sub(_lookup, expression)


class HealthStatus(BaseModel):
    """Response model for the /health and /ready K8s probe endpoints."""

    connector_name: str = Field(description="Name of the connector")
    status: ConnectorStatus = Field(description="Current connector status")
    uptime_seconds: float = Field(description="Seconds since the connector started")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Connector-specific health details (e.g. last poll time, message count)",
    )


class BackfillRequest(BaseModel):
    """A half-open replay window ``[start, end)`` plus connector options."""

    start: datetime = Field(description="Start of the backfill window (UTC)")
    end: datetime = Field(description="End of the backfill window (UTC)")
    params: dict[str, Any] = Field(
        default_factory=dict,
        description="Connector-specific backfill parameters",
    )

    @model_validator(mode="after")
    def _check_window(self) -> BackfillRequest:
        if self.end <= self.start:
            raise ValueError("Backfill end must be after start")
        return self


class DeadLetterEnvelope(BaseModel):
    """Wrapper for messages that failed a service or Kafka delivery."""

    original_message: RelayMessage = Field(description="The message that could not be delivered")
    connector_name: str = Field(description="Connector that produced the message")
    error: str = Field(description="Final error message")
    error_type: str = Field(default="", description="Exception class name of the final error")
    attempts: int = Field(description="Total delivery attempts made")
    failed_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp when the message was routed to dead-letter (UTC)",
    )
