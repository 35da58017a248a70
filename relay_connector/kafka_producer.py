"""aiokafka producer that publishes relay messages and dead-letter envelopes."""

from __future__ import annotations

from aiokafka import AIOKafkaProducer
from pydantic import BaseModel
import structlog

from .config import KafkaConfig
from .models import DeadLetterEnvelope, RelayMessage

logger = structlog.get_logger()

CONNECTOR_HEADER = "relay-connector"
RECORD_TYPE_HEADER = "relay-record-type"


class KafkaProducerWrapper:
    """Publishes pydantic models as JSON records keyed by message id.

    Each record carries the producing connector's name and a record type
    (``message`` or ``dead-letter``) as Kafka headers, so consumers can
    route without parsing the value.
    """

    def __init__(self, config: KafkaConfig, connector_name: str) -> None:
        self._config = config
        self._connector_name = connector_name
        self._producer: AIOKafkaProducer | None = None

    async def start(self) -> None:
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self._config.bootstrap_servers,
            client_id=self._connector_name,
            acks=self._config.producer_acks,
            compression_type=self._config.producer_compression,
        )
        await self._producer.start()
        logger.info("kafka_producer_started", servers=self._config.bootstrap_servers)

    async def stop(self) -> None:
        if self._producer is None:
            return
        await self._producer.stop()
        self._producer = None
        logger.info("kafka_producer_stopped")

    async def _publish(self, topic: str, message_id: str, record: BaseModel, record_type: str) -> None:
        assert self._producer is not None, "Producer not started"
        await self._producer.send_and_wait(
            topic,
            value=record.model_dump_json().encode("utf-8"),
            key=message_id.encode("utf-8"),
            headers=[
                (CONNECTOR_HEADER, self._connector_name.encode("utf-8")),
                (RECORD_TYPE_HEADER, record_type.encode("utf-8")),
            ],
        )

    async def send_message(self, message: RelayMessage) -> None:
        await self._publish(self._config.messages_topic, message.message_id, message, "message")
        logger.debug(
            "message_sent",
            topic=self._config.messages_topic,
            message_id=message.message_id,
            payloads=len(message.payloads),
        )

    async def send_dead_letter(self, envelope: DeadLetterEnvelope) -> None:
        message_id = envelope.original_message.message_id
        await self._publish(self._config.dead_letter_topic, message_id, envelope, "dead-letter")
        logger.warning(
            "dead_letter_sent",
            topic=self._config.dead_letter_topic,
            message_id=message_id,
            error_type=envelope.error_type,
        )
