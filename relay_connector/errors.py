"""Exceptions raised by message-processing services."""

from __future__ import annotations


class ServiceError(Exception):
    """A service could not process a message.

    Raised from :meth:`MessageService.do_service`.  The connector does not
    retry it: the message is routed straight to the dead-letter topic.
    """


class ExpressionError(ServiceError):
    """A ``%message{key}`` expression names metadata the message lacks."""

    def __init__(self, expression: str, key: str) -> None:
        super().__init__(f"Metadata key {key!r} required by {expression!r} is not set")
        self.expression = expression
        self.key = key
