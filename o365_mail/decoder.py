"""Turn Graph message and attachment JSON into a multi-payload RelayMessage.

The mail body becomes the payload keyed by the Graph message id; every
file attachment becomes a further payload keyed by its filename.
Attachments whose content type is ``multipart/*`` are MIME-parsed with
the standard library ``email`` package and each named part is added
individually.
"""

from __future__ import annotations

import base64
import binascii
import email
import email.policy
from collections.abc import Iterator
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any

import structlog

from relay_connector import RelayMessage

logger = structlog.get_logger()

EMAIL_PAYLOAD_TYPE = "emailpayloadtype"
EMAIL_PAYLOAD_TYPE_PAYLOAD = "payload"
EMAIL_PAYLOAD_TYPE_ATTACHMENT = "attachment"
EMAIL_ATTACH_FILENAME = "emailattachmentfilename"
EMAIL_ATTACH_CONTENT_TYPE = "emailattachmentcontenttype"
EMAIL_ATTACH_SIZE = "emailattachmentsize"

FILE_ATTACHMENT_TYPE = "#microsoft.graph.fileAttachment"


@dataclass
class DecodedAttachment:
    """A single attachment ready to be added as a payload."""

    filename: str
    content_type: str
    payload: bytes
    size: int


# ----------------------------------------------------------------------
# Message body and metadata
# ----------------------------------------------------------------------


def decode_message(graph_message: dict[str, Any], *, charset: str = "utf-8") -> RelayMessage:
    """Build a RelayMessage from a Graph message: body payload plus metadata."""
    message_id = graph_message["id"]
    body = (graph_message.get("body") or {}).get("content") or ""

    message = RelayMessage(message_id=message_id)
    # unmappable characters become "?" rather than failing the mail
    message.add_payload(message_id, body.encode(charset, errors="replace"))
    message.add_payload_header(EMAIL_PAYLOAD_TYPE, EMAIL_PAYLOAD_TYPE_PAYLOAD)

    message.metadata.update(
        {
            "EmailID": message_id,
            "Subject": graph_message.get("subject") or "",
            "To": join_addresses(graph_message.get("toRecipients")),
            "From": _address(graph_message.get("from")),
            "CC": join_addresses(graph_message.get("ccRecipients")),
            "BCC": join_addresses(graph_message.get("bccRecipients")),
        }
    )
    return message


def _address(recipient: dict[str, Any] | None) -> str:
    if not recipient:
        return ""
    return (recipient.get("emailAddress") or {}).get("address") or ""


def join_addresses(recipients: list[dict[str, Any]] | None) -> str:
    """Comma-join the addresses of a Graph recipient list."""
    return ",".join(_address(r) for r in recipients or [])


def add_internet_headers(message: RelayMessage, headers: list[dict[str, str]]) -> None:
    for header in headers:
        message.metadata[header["name"]] = header.get("value", "")


# ----------------------------------------------------------------------
# Attachments
# ----------------------------------------------------------------------


def decode_content_bytes(content: str | bytes) -> bytes:
    """Base64-decode attachment content, or return it raw if it isn't Base64.

    Graph documents ``contentBytes`` as Base64, but that doesn't always
    hold.
    """
    raw = content.encode("utf-8") if isinstance(content, str) else content
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return raw


def decode_attachments(attachments: list[dict[str, Any]]) -> list[DecodedAttachment]:
    """Decode the file attachments of one message; other kinds are skipped."""
    decoded: list[DecodedAttachment] = []
    for attachment in attachments:
        name = attachment.get("name") or "unnamed"
        odata_type = attachment.get("@odata.type")
        logger.debug(
            "attachment_found",
            name=name,
            odata_type=odata_type,
            size=attachment.get("size"),
        )
        if odata_type != FILE_ATTACHMENT_TYPE:
            continue

        content_type = attachment.get("contentType") or "application/octet-stream"
        content = decode_content_bytes(attachment.get("contentBytes") or b"")
        if content_type.lower().startswith("multipart"):
            decoded.extend(parse_mime_multipart(content, content_type))
        else:
            decoded.append(
                DecodedAttachment(
                    filename=name,
                    content_type=content_type,
                    payload=content,
                    size=attachment.get("size") or len(content),
                )
            )
    return decoded


def parse_mime_multipart(content: bytes, content_type: str) -> list[DecodedAttachment]:
    """Extract the named leaf parts of a multipart attachment.

    Unnamed leaf parts are the mail body and are skipped; nested
    multiparts are walked recursively.
    """
    if "boundary=" in content_type.lower():
        header = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("utf-8")
        raw = header + content
    else:
        # no boundary in the Graph content type: the content must carry its own headers
        raw = content
    msg = email.message_from_bytes(raw, policy=email.policy.default)
    return list(_walk_parts(msg))


def _walk_parts(part: EmailMessage) -> Iterator[DecodedAttachment]:
    for child in part.iter_parts():
        if child.is_multipart():
            yield from _walk_parts(child)
            continue

        filename = child.get_filename()
        if filename is None:
            continue

        payload = child.get_payload(decode=True)
        if not isinstance(payload, bytes):
            logger.warning("unsupported_mime_part", content_type=child.get_content_type())
            continue

        yield DecodedAttachment(
            filename=filename,
            content_type=child.get_content_type(),
            payload=payload,
            size=len(payload),
        )


def add_attachment(message: RelayMessage, attachment: DecodedAttachment) -> None:
    """Add *attachment* as a payload keyed by its filename, with email headers."""
    name = attachment.filename
    message.add_payload(name, attachment.payload)
    message.add_payload_header(EMAIL_PAYLOAD_TYPE, EMAIL_PAYLOAD_TYPE_ATTACHMENT, payload_id=name)
    message.add_payload_header(EMAIL_ATTACH_FILENAME, name, payload_id=name)
    message.add_payload_header(EMAIL_ATTACH_CONTENT_TYPE, attachment.content_type, payload_id=name)
    message.add_payload_header(EMAIL_ATTACH_SIZE, str(attachment.size), payload_id=name)
