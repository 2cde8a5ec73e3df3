"""
Retry/backoff transport for model calls.

Network errors, timeouts, 429 and 5xx are retried with exponential backoff;
any other 4xx fails immediately. Every failure surfaces as a TransportError
with a classified reason.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

import openai

from .errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _status_reason(status_code: Optional[int]) -> str:
    if status_code is None:
        return "network"
    if status_code == 429:
        return "rate_limited"
    if status_code in (401, 403):
        return "auth"
    if status_code >= 500:
        return "server"
    return "client"


def classify_exception(exc: BaseException) -> TransportError:
    """Map an SDK or socket failure onto a TransportError reason."""
    if isinstance(exc, TransportError):
        return exc
    if isinstance(exc, (openai.APITimeoutError, TimeoutError)):
        reason, status = "timeout", None
    elif isinstance(exc, (openai.APIConnectionError, ConnectionError)):
        reason, status = "network", None
    elif isinstance(exc, openai.APIStatusError):
        status = exc.status_code
        reason = _status_reason(status)
    else:
        raise exc
    error = TransportError(str(exc) or reason, reason=reason, status_code=status)
    error.__cause__ = exc
    return error


def call_with_retry(
    fn: Callable[[float], T],
    retries: int = 3,
    initial_backoff: float = 1.0,
    max_elapsed: float = 60.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Call `fn(remaining)` until it succeeds. `remaining` is the time left of
    the `max_elapsed` budget; `fn` must not let a single attempt outlive it.
    Gives up after `retries` retries, or as soon as the budget is spent.
    """
    started = clock()
    backoff = initial_backoff
    attempt = 0
    while True:
        remaining = max_elapsed - (clock() - started)
        try:
            return fn(remaining)
        except (TransportError, openai.APIError, TimeoutError, ConnectionError) as exc:
            error = classify_exception(exc)

        if not error.retryable:
            logger.warning("Model request failed (%s, status=%s); not retrying", error.reason, error.status_code)
            raise error
        if attempt >= retries:
            logger.warning("Model request failed after %d attempts (%s)", attempt + 1, error.reason)
            raise error
        if clock() - started + backoff >= max_elapsed:
            logger.warning("Model request gave up: %.1fs retry budget exhausted (%s)", max_elapsed, error.reason)
            raise error

        attempt += 1
        logger.info("Retrying model request in %.1fs (attempt %d/%d, %s)", backoff, attempt, retries, error.reason)
        sleep(backoff)
        backoff *= 2
