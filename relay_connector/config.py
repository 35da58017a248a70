"""Framework settings, read from the environment with pydantic-settings.

Each concern has its own env prefix (``KAFKA_``, ``RETRY_``, ``LOG_``,
``CONNECTOR_``); connector packages subclass :class:`ConnectorConfig` and
nest their own settings the same way.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class KafkaConfig(BaseSettings):
    """Where relay messages and dead letters are published."""

    model_config = {"env_prefix": "KAFKA_"}

    bootstrap_servers: str = Field(default="localhost:9092", description="Comma-separated brokers")
    messages_topic: str = Field(default="relay-messages", description="Topic for delivered messages")
    dead_letter_topic: str = Field(
        default="relay-dead-letter",
        description="Topic for messages a service rejected or Kafka would not take",
    )
    producer_acks: str = Field(default="all", description="Producer acknowledgement level")
    producer_compression: Literal["gzip", "snappy", "lz4", "zstd"] = Field(
        default="gzip",
        description="Compression codec for produced records",
    )


class RetryConfig(BaseSettings):
    """Exponential backoff for Kafka, Graph and Cosmos calls."""

    model_config = {"env_prefix": "RETRY_"}

    max_attempts: int = Field(default=5, ge=1, description="Attempts including the first")
    initial_wait_seconds: float = Field(default=1.0, gt=0, description="Shortest backoff wait")
    max_wait_seconds: float = Field(default=60.0, gt=0, description="Longest backoff wait")
    multiplier: float = Field(default=2.0, gt=0, description="Backoff growth factor")

    @model_validator(mode="after")
    def _check_wait_bounds(self) -> RetryConfig:
        if self.max_wait_seconds < self.initial_wait_seconds:
            raise ValueError("max_wait_seconds must not be below initial_wait_seconds")
        return self


class LoggingConfig(BaseSettings):
    """How :func:`~relay_connector.logging.setup_logging` renders events."""

    model_config = {"env_prefix": "LOG_"}

    json_output: bool = Field(default=True, description="JSON lines (True) or console output")
    level: str = Field(default="INFO", description="Root log level name")


class ConnectorConfig(BaseSettings):
    """Root settings shared by every connector process."""

    model_config = {"env_prefix": "CONNECTOR_"}

    name: str = Field(description="Connector name, used as Kafka client id and in logs")
    health_port: int = Field(default=8080, description="Port of the /health and /ready endpoints")

    kafka: KafkaConfig = Field(default_factory=KafkaConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
