"""tenacity policies built from :class:`RetryConfig`."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import RetryConfig

logger = structlog.get_logger()

# Graph and Cosmos answer throttling and gateway trouble with these
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def is_transient_http_error(exc: BaseException) -> bool:
    """True for connection-level failures and throttling/5xx responses."""
    if isinstance(exc, httpx.TransportError):
        return True
    return (
        isinstance(exc, httpx.HTTPStatusError)
        and exc.response.status_code in RETRYABLE_STATUS_CODES
    )


def _before_sleep(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "retrying",
        function=getattr(state.fn, "__qualname__", None),
        attempt=state.attempt_number,
        wait_seconds=round(state.next_action.sleep, 3) if state.next_action else None,
        error=str(exc),
        error_type=type(exc).__name__ if exc else None,
    )


def with_retry(
    config: RetryConfig,
    *,
    retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
    retry_when: Callable[[BaseException], bool] | None = None,
) -> Callable:
    """Decorate an async callable with exponential-backoff retries.

    By default any exception in *retryable_exceptions* is retried.  Pass
    *retry_when* (e.g. :func:`is_transient_http_error`) to decide per
    exception instead.  The last exception is re-raised once
    ``config.max_attempts`` is reached.
    """
    condition = (
        retry_if_exception(retry_when)
        if retry_when is not None
        else retry_if_exception_type(retryable_exceptions)
    )
    return retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.multiplier,
            min=config.initial_wait_seconds,
            max=config.max_wait_seconds,
        ),
        retry=condition,
        before_sleep=_before_sleep,
        reraise=True,
    )
