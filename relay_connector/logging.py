"""structlog configuration for relay connector processes."""

from __future__ import annotations

import logging
import sys

import structlog

from .config import LoggingConfig

# Client libraries that log every request at INFO; Graph URLs contain mailbox names
NOISY_LOGGERS = (
    "httpx",
    "azure.identity",
    "azure.core.pipeline.policies.http_logging_policy",
    "aiokafka",
)


def _renderer(json_output: bool) -> structlog.types.Processor:
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(config: LoggingConfig | None = None, *, connector: str | None = None) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Every event carries ``connector`` when one is given, so the lines of
    several connectors sharing a log pipeline can be told apart.  Loggers
    in :data:`NOISY_LOGGERS` are held at WARNING.
    """
    config = config or LoggingConfig()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(config.json_output),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(config.level.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    if connector is not None:
        structlog.contextvars.bind_contextvars(connector=connector)
