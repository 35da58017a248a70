"""Office 365 mail consumer: polls a mailbox through Microsoft Graph."""

from .config import GraphConfig, MailboxConfig, O365ConnectorConfig
from .consumer import O365MailConsumer
from .decoder import (
    DecodedAttachment,
    add_attachment,
    decode_attachments,
    decode_message,
    parse_mime_multipart,
)
from .graph_client import AsyncGraphClient

__all__ = [
    "AsyncGraphClient",
    "DecodedAttachment",
    "GraphConfig",
    "MailboxConfig",
    "O365ConnectorConfig",
    "O365MailConsumer",
    "add_attachment",
    "decode_attachments",
    "decode_message",
    "parse_mime_multipart",
]
