"""Abstract interfaces for connectors and message services."""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator

from .models import BackfillRequest, RelayMessage


class ConnectorInterface(abc.ABC):
    """Abstract interface for a relay connector plugin.

    Concrete connectors implement ``ingest`` (live polling) and
    optionally ``backfill`` (historical replay).  Both are async
    generators that yield :class:`RelayMessage` instances; the framework
    consumes them and handles services, delivery, retry, and dead-letter
    routing.  Work placed after a ``yield`` runs once the framework has
    finished with that message.
    """

    @abc.abstractmethod
    def ingest(self) -> AsyncIterator[RelayMessage]:
        """Yield messages from the live data source.

        This is an async generator that runs indefinitely (until the
        connector is shut down).
        """
        ...

    async def health_check(self) -> dict[str, object]:
        """Return connector-specific health details.

        Override to include source-system connectivity checks, last-poll
        timestamps, etc.  The dict is included in the ``/health`` response.
        """
        return {}

    def backfill(self, request: BackfillRequest) -> AsyncIterator[RelayMessage]:
        """Yield messages for a historical backfill window.

        The default raises ``NotImplementedError``.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support backfill")


class MessageService(abc.ABC):
    """A processing step applied to each message before delivery.

    Implementations mutate the message in place and raise
    :class:`~relay_connector.errors.ServiceError` when the message cannot
    be processed.
    """

    @abc.abstractmethod
    def do_service(self, message: RelayMessage) -> None:
        ...
