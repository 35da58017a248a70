"""Shared test fixtures for the relay plugin test suite."""

from __future__ import annotations

import base64
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from unittest.mock import AsyncMock

import pytest

from relay_connector.config import ConnectorConfig, KafkaConfig, LoggingConfig, RetryConfig
from relay_connector.models import RelayMessage
from o365_mail.config import GraphConfig, MailboxConfig, O365ConnectorConfig

DUMMY_MASTER_KEY = base64.b64encode(b"my-master-key").decode("ascii")


@pytest.fixture
def master_key() -> str:
    return DUMMY_MASTER_KEY


@pytest.fixture
def kafka_config() -> KafkaConfig:
    return KafkaConfig(
        bootstrap_servers="localhost:9092",
        messages_topic="relay-messages",
        dead_letter_topic="relay-dead-letter",
    )


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(
        max_attempts=3,
        initial_wait_seconds=0.01,
        max_wait_seconds=0.1,
        multiplier=2.0,
    )


@pytest.fixture
def connector_config(kafka_config: KafkaConfig, retry_config: RetryConfig) -> ConnectorConfig:
    return ConnectorConfig(
        name="test-connector",
        health_port=18080,
        kafka=kafka_config,
        retry=retry_config,
        logging=LoggingConfig(json_output=False, level="DEBUG"),
    )


@pytest.fixture
def relay_message() -> RelayMessage:
    message = RelayMessage(message_id="msg-001", metadata={"correlation_id": "corr-123"})
    message.add_payload("msg-001", b"hello world")
    return message


@pytest.fixture
def mock_kafka_producer() -> AsyncMock:
    """A mock AIOKafkaProducer with async start/stop/send_and_wait."""
    producer = AsyncMock()
    producer.start = AsyncMock()
    producer.stop = AsyncMock()
    producer.send_and_wait = AsyncMock()
    return producer


# ------------------------------------------------------------------
# Office 365 / Graph
# ------------------------------------------------------------------


@pytest.fixture
def graph_config() -> GraphConfig:
    return GraphConfig(
        tenant_id="tenant-1",
        client_id="client-1",
        client_secret="s3cret",
        base_url="https://graph.test/v1.0",
        page_size=10,
    )


@pytest.fixture
def mailbox_config() -> MailboxConfig:
    return MailboxConfig(username="user@example.com", poll_interval_seconds=0.0)


@pytest.fixture
def o365_config(
    graph_config: GraphConfig,
    mailbox_config: MailboxConfig,
    kafka_config: KafkaConfig,
    retry_config: RetryConfig,
) -> O365ConnectorConfig:
    return O365ConnectorConfig(
        name="o365-test",
        health_port=18081,
        kafka=kafka_config,
        retry=retry_config,
        graph=graph_config,
        mailbox=mailbox_config,
    )


@pytest.fixture
def graph_message_factory():
    """Factory for Graph message JSON with overrides."""

    def _make(message_id: str = "AAMk-1", **overrides) -> dict:
        message = {
            "id": message_id,
            "subject": "Quarterly report",
            "hasAttachments": False,
            "body": {"contentType": "html", "content": "<p>See attached</p>"},
            "from": {"emailAddress": {"name": "Sender", "address": "sender@example.com"}},
            "toRecipients": [
                {"emailAddress": {"address": "a@example.com"}},
                {"emailAddress": {"address": "b@example.com"}},
            ],
            "ccRecipients": [{"emailAddress": {"address": "cc@example.com"}}],
            "bccRecipients": [],
        }
        message.update(overrides)
        return message

    return _make


@pytest.fixture
def file_attachment_factory():
    """Factory for Graph fileAttachment JSON (content is Base64-encoded)."""

    def _make(
        name: str = "report.pdf",
        content: bytes = b"%PDF-1.4 fake pdf content",
        content_type: str = "application/pdf",
        **overrides,
    ) -> dict:
        attachment = {
            "@odata.type": "#microsoft.graph.fileAttachment",
            "id": f"att-{name}",
            "name": name,
            "contentType": content_type,
            "size": len(content),
            "contentBytes": base64.b64encode(content).decode("ascii"),
        }
        attachment.update(overrides)
        return attachment

    return _make


@pytest.fixture
def multipart_builder():
    """Build a multipart body and return ``(content_type, body_bytes)``.

    The body excludes the top-level headers, matching what Graph returns
    for a multipart file attachment.
    """

    def _build(
        attachments: list[tuple[str, str, bytes]],
        *,
        body_text: str = "Plain body",
        nested: list[tuple[str, str, bytes]] | None = None,
    ) -> tuple[str, bytes]:
        msg = MIMEMultipart("mixed", boundary="==outer-boundary==")
        msg.attach(MIMEText(body_text, "plain"))

        def _attach(container, filename, content_type, payload):
            maintype, subtype = content_type.split("/", 1)
            part = MIMEBase(maintype, subtype)
            part.set_payload(payload)
            encoders.encode_base64(part)
            part.add_header("Content-Disposition", "attachment", filename=filename)
            container.attach(part)

        for filename, content_type, payload in attachments:
            _attach(msg, filename, content_type, payload)

        if nested:
            inner = MIMEMultipart("mixed", boundary="==inner-boundary==")
            inner.attach(MIMEText("inner body", "plain"))
            for filename, content_type, payload in nested:
                _attach(inner, filename, content_type, payload)
            msg.attach(inner)

        raw = msg.as_bytes()
        _, _, body = raw.partition(b"\n\n")
        return msg["Content-Type"], body

    return _build
