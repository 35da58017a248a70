"""Relay connector framework.

Public API re-exported here for convenience::

    from relay_connector import BaseConnector, MessageService, RelayMessage
"""

from .base import BaseConnector
from .config import ConnectorConfig, KafkaConfig, LoggingConfig, RetryConfig
from .dead_letter import DeadLetterHandler
from .errors import ExpressionError, ServiceError
from .health import create_health_app
from .interface import ConnectorInterface, MessageService
from .kafka_producer import KafkaProducerWrapper
from .logging import setup_logging
from .models import (
    BackfillRequest,
    ConnectorStatus,
    DeadLetterEnvelope,
    HealthStatus,
    Payload,
    RelayMessage,
)
from .retry import is_transient_http_error, with_retry

__all__ = [
    "BackfillRequest",
    "BaseConnector",
    "ConnectorConfig",
    "ConnectorInterface",
    "ConnectorStatus",
    "DeadLetterEnvelope",
    "DeadLetterHandler",
    "ExpressionError",
    "HealthStatus",
    "KafkaConfig",
    "KafkaProducerWrapper",
    "LoggingConfig",
    "MessageService",
    "Payload",
    "RelayMessage",
    "RetryConfig",
    "ServiceError",
    "create_health_app",
    "is_transient_http_error",
    "setup_logging",
    "with_retry",
]
