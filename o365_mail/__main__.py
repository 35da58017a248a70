"""Entry point for the Office 365 mail consumer.

Usage::

    python -m o365_mail                        # poll the mailbox until SIGTERM
    python -m o365_mail backfill START END     # replay mail received in [START, END)

START and END are ISO-8601 timestamps (UTC when no offset is given).
Configuration comes from ``CONNECTOR_*``, ``GRAPH_*``, ``MAILBOX_*``,
``KAFKA_*``, ``RETRY_*`` and ``LOG_*`` env vars.  Set
``CONNECTOR_COSMOS_AUTH_ENABLED=true`` (plus ``COSMOS_*``) to stamp
Cosmos DB auth headers on every message.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime

from cosmos_auth import CosmosAuthorizationHeaderService
from relay_connector import BackfillRequest, MessageService

from .config import O365ConnectorConfig
from .consumer import O365MailConsumer

USAGE = "Usage: python -m o365_mail [backfill START END]"


def _timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _backfill_request(args: list[str]) -> BackfillRequest | None:
    if not args:
        return None
    if len(args) != 3 or args[0] != "backfill":
        print(USAGE, file=sys.stderr)
        sys.exit(1)
    try:
        return BackfillRequest(start=_timestamp(args[1]), end=_timestamp(args[2]))
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


def main() -> None:
    backfill = _backfill_request(sys.argv[1:])

    config = O365ConnectorConfig(name="o365-mail")
    services: list[MessageService] = []
    if config.cosmos_auth_enabled:
        services.append(CosmosAuthorizationHeaderService(config.cosmos_auth))

    consumer = O365MailConsumer(config, services)
    asyncio.run(consumer.run(backfill=backfill))


if __name__ == "__main__":
    main()
