"""Tests for relay_connector.config."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from relay_connector.config import ConnectorConfig, KafkaConfig, LoggingConfig, RetryConfig


class TestKafkaConfig:
    def test_defaults(self):
        cfg = KafkaConfig()
        assert cfg.bootstrap_servers == "localhost:9092"
        assert cfg.messages_topic == "relay-messages"
        assert cfg.dead_letter_topic == "relay-dead-letter"
        assert cfg.producer_acks == "all"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("KAFKA_BOOTSTRAP_SERVERS", "broker:29092")
        monkeypatch.setenv("KAFKA_MESSAGES_TOPIC", "mail")
        cfg = KafkaConfig()
        assert cfg.bootstrap_servers == "broker:29092"
        assert cfg.messages_topic == "mail"


class TestRetryConfig:
    def test_defaults(self):
        cfg = RetryConfig()
        assert cfg.max_attempts == 5
        assert cfg.initial_wait_seconds == 1.0
        assert cfg.max_wait_seconds == 60.0
        assert cfg.multiplier == 2.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "9")
        assert RetryConfig().max_attempts == 9


class TestLoggingConfig:
    def test_defaults(self):
        cfg = LoggingConfig()
        assert cfg.json_output is True
        assert cfg.level == "INFO"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LOG_JSON_OUTPUT", "false")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        cfg = LoggingConfig()
        assert cfg.json_output is False
        assert cfg.level == "debug"


class TestConnectorConfig:
    def test_name_required(self, monkeypatch):
        monkeypatch.delenv("CONNECTOR_NAME", raising=False)
        with pytest.raises(ValidationError):
            ConnectorConfig()  # type: ignore[call-arg]

    def test_nested_defaults(self):
        cfg = ConnectorConfig(name="x")
        assert cfg.health_port == 8080
        assert isinstance(cfg.kafka, KafkaConfig)
        assert isinstance(cfg.retry, RetryConfig)
        assert isinstance(cfg.logging, LoggingConfig)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CONNECTOR_NAME", "from-env")
        monkeypatch.setenv("CONNECTOR_HEALTH_PORT", "9090")
        cfg = ConnectorConfig()  # type: ignore[call-arg]
        assert cfg.name == "from-env"
        assert cfg.health_port == 9090


class TestValidation:
    def test_retry_needs_one_attempt(self):
        with pytest.raises(ValidationError):
            RetryConfig(max_attempts=0)

    def test_retry_wait_bounds(self):
        with pytest.raises(ValidationError, match="max_wait_seconds"):
            RetryConfig(initial_wait_seconds=5.0, max_wait_seconds=1.0)

    def test_unknown_compression_rejected(self):
        with pytest.raises(ValidationError):
            KafkaConfig(producer_compression="brotli")
