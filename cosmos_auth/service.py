"""Message service that stamps Cosmos DB auth headers into metadata."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from relay_connector import MessageService, RelayMessage

from .config import CosmosAuthConfig
from .signer import sign

logger = structlog.get_logger()


class CosmosAuthorizationHeaderService(MessageService):
    """Sign a Cosmos DB request for each message.

    Writes the HTTP-date to ``config.date_key`` and the percent-encoded
    token to ``config.target_key``.  A bad master key raises
    :class:`~cosmos_auth.signer.InvalidCredentialError`, which fails the
    message.
    """

    def __init__(
        self,
        config: CosmosAuthConfig,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock

    def do_service(self, message: RelayMessage) -> None:
        cfg = self._config
        master_key = cfg.master_key.get_secret_value() if cfg.master_key else None
        resource_id = message.resolve(cfg.resource_id)

        token, date = sign(
            message.resolve(cfg.http_verb),
            message.resolve(cfg.resource_type),
            resource_id,
            master_key,
            now=self._clock() if self._clock else None,
        )
        message.metadata[cfg.date_key] = date
        message.metadata[cfg.target_key] = token
        logger.debug(
            "cosmos_authorization_added",
            message_id=message.message_id,
            resource_id=resource_id,
            target_key=cfg.target_key,
        )
