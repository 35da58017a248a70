"""O365MailConsumer: poll an Office 365 mailbox through Microsoft Graph."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from relay_connector import BackfillRequest, BaseConnector, MessageService, RelayMessage

from .config import O365ConnectorConfig
from .decoder import add_attachment, add_internet_headers, decode_attachments, decode_message
from .graph_client import AsyncGraphClient

logger = structlog.get_logger()


def _graph_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class O365MailConsumer(BaseConnector):
    """Mail consumer geared towards Microsoft Office 365.

    Each poll lists the configured folder (``$filter`` or ``$search``),
    turns every mail into a multi-payload :class:`RelayMessage` and yields
    it.  Once the framework has delivered the message the mail is marked
    as read, or deleted when ``mailbox.delete`` is set.

    A failure anywhere in a poll cycle is logged and ends that cycle;
    the next cycle starts after ``poll_interval_seconds``.
    """

    def __init__(
        self,
        config: O365ConnectorConfig,
        services: Sequence[MessageService] = (),
        *,
        graph: AsyncGraphClient | None = None,
    ) -> None:
        super().__init__(config, services)
        self._mail_config = config
        self._graph = graph or AsyncGraphClient(config.graph, config.retry)
        self._last_poll_time: datetime | None = None
        self._messages_received: int = 0
        self._poll_errors: int = 0

    @property
    def _username(self) -> str:
        return self._mail_config.mailbox.username

    # ------------------------------------------------------------------
    # Live polling
    # ------------------------------------------------------------------

    async def ingest(self) -> AsyncIterator[RelayMessage]:
        """Poll the mailbox indefinitely, yield a RelayMessage per mail."""
        mailbox = self._mail_config.mailbox
        await self._graph.start()

        try:
            while True:
                logger.debug("polling_mailbox", username=mailbox.username, folder=mailbox.folder)
                try:
                    outlook_messages = await self._graph.list_messages(
                        mailbox.username,
                        mailbox.folder,
                        filter=mailbox.filter,
                        search=mailbox.search,
                    )
                except Exception:
                    self._poll_errors += 1
                    logger.exception("mail_poll_failed", username=mailbox.username)
                    outlook_messages = []

                self._last_poll_time = datetime.now(UTC)
                if outlook_messages:
                    logger.debug("messages_found", count=len(outlook_messages))

                for outlook_message in outlook_messages:
                    email_id = outlook_message.get("id")
                    try:
                        message = await self._process_message(outlook_message)
                    except Exception:
                        self._poll_errors += 1
                        logger.exception("mail_processing_failed", email_id=email_id)
                        break

                    yield message

                    try:
                        await self._acknowledge(email_id)
                    except Exception:
                        self._poll_errors += 1
                        logger.exception("mail_acknowledge_failed", email_id=email_id)
                        break
                    self._messages_received += 1

                await asyncio.sleep(mailbox.poll_interval_seconds)
        finally:
            await self._graph.stop()

    async def _process_message(self, outlook_message: dict[str, Any]) -> RelayMessage:
        """Decode body and metadata, then attachments and internet headers."""
        email_id = outlook_message["id"]
        message = decode_message(outlook_message, charset=self._mail_config.mailbox.charset)

        logger.debug(
            "processing_email",
            email_id=email_id,
            sender=message.metadata["From"],
            subject=message.metadata["Subject"],
        )

        if outlook_message.get("hasAttachments"):
            attachments = await self._graph.list_attachments(self._username, email_id)
            logger.debug("message_attachments", email_id=email_id, count=len(attachments))
            for attachment in decode_attachments(attachments):
                add_attachment(message, attachment)
            message.switch_payload(email_id)

        headers = await self._graph.get_internet_headers(self._username, email_id)
        add_internet_headers(message, headers)
        return message

    async def _acknowledge(self, email_id: str) -> None:
        if self._mail_config.mailbox.delete:
            await self._graph.delete_message(self._username, email_id)
        else:
            await self._graph.mark_as_read(self._username, email_id)

    # ------------------------------------------------------------------
    # Health / backfill
    # ------------------------------------------------------------------

    async def health_check(self) -> dict[str, object]:
        mailbox = self._mail_config.mailbox
        return {
            "username": mailbox.username,
            "folder": mailbox.folder,
            "last_poll_time": (
                self._last_poll_time.isoformat() if self._last_poll_time else None
            ),
            "messages_received": self._messages_received,
            "poll_errors": self._poll_errors,
        }

    async def backfill(self, request: BackfillRequest) -> AsyncIterator[RelayMessage]:
        """Replay mails received in ``[start, end)`` without marking them."""
        mailbox = self._mail_config.mailbox
        received_filter = (
            f"receivedDateTime ge {_graph_datetime(request.start)} "
            f"and receivedDateTime lt {_graph_datetime(request.end)}"
        )
        await self._graph.start()

        try:
            outlook_messages = await self._graph.list_messages(
                mailbox.username,
                mailbox.folder,
                filter=received_filter,
            )
            logger.info(
                "backfill_fetched",
                count=len(outlook_messages),
                start=request.start.isoformat(),
                end=request.end.isoformat(),
            )
            for outlook_message in outlook_messages:
                yield await self._process_message(outlook_message)
        finally:
            await self._graph.stop()
