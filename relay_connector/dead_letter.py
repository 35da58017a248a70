"""Routing of undeliverable messages to the dead-letter topic."""

from __future__ import annotations

import structlog

from .kafka_producer import KafkaProducerWrapper
from .models import DeadLetterEnvelope, RelayMessage

logger = structlog.get_logger()


def _describe(error: BaseException | str) -> tuple[str, str]:
    if isinstance(error, BaseException):
        return str(error), type(error).__name__
    return error, ""


class DeadLetterHandler:
    """Publish a failed message, with why and how often it failed."""

    def __init__(self, producer: KafkaProducerWrapper, connector_name: str) -> None:
        self._producer = producer
        self._connector_name = connector_name

    async def send(
        self,
        message: RelayMessage,
        *,
        error: BaseException | str,
        attempts: int,
    ) -> DeadLetterEnvelope:
        text, error_type = _describe(error)
        envelope = DeadLetterEnvelope(
            original_message=message,
            connector_name=self._connector_name,
            error=text,
            error_type=error_type,
            attempts=attempts,
        )
        await self._producer.send_dead_letter(envelope)
        logger.error(
            "message_dead_lettered",
            message_id=message.message_id,
            payloads=sorted(message.payloads),
            error=text,
            error_type=error_type,
            attempts=attempts,
        )
        return envelope
