"""
Bounded retry with linear backoff.

The decision of what to retry is a plain predicate so it can be tested on
its own: client errors (4xx), validation errors and configuration errors
fail fast; everything else (5xx, timeouts, connection failures, errors with
no HTTP status) is retried until the attempt budget runs out.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from ._constants import DEFAULT_MAX_RETRIES, RETRY_BASE_DELAY
from .exceptions import AgentforceConfigurationError, AgentforceError, MessageValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable_error(error: BaseException) -> bool:
    """
    Decide whether a failed attempt should be retried.

    Args:
        error: Exception raised by the attempt

    Returns:
        False for validation, configuration and 4xx failures, True otherwise
    """
    if isinstance(error, (MessageValidationError, AgentforceConfigurationError)):
        return False
    if isinstance(error, AgentforceError):
        return not error.is_client_error
    if isinstance(error, httpx.HTTPStatusError):
        return not error.response.is_client_error
    return True


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Retry budget and backoff.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Seconds; the wait before retry n is base_delay * n
        is_retryable: Predicate deciding whether an error is transient
        sleep: Awaitable sleep, injectable for tests
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay: float = RETRY_BASE_DELAY
    is_retryable: Callable[[BaseException], bool] = is_retryable_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def delay_for(self, retry_number: int) -> float:
        """Backoff before the given 1-based retry."""
        return self.base_delay * retry_number


async def with_retry(operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    """
    Run operation, retrying transient failures according to policy.

    Args:
        operation: Zero-argument coroutine function; called once per attempt
        policy: Retry budget, backoff and retry predicate

    Returns:
        Result of the first successful attempt

    Raises:
        The first non-retryable error immediately, or the last error once
        the attempt budget is exhausted.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not policy.is_retryable(e):
                logger.debug(f"[RETRY] Not retrying {type(e).__name__}: {e}")
                raise
            if attempt >= policy.max_retries:
                logger.error(f"[RETRY] Giving up after {attempt + 1} attempt(s): {e}")
                raise
            attempt += 1
            delay = policy.delay_for(attempt)
            logger.warning(
                f"[RETRY] Attempt {attempt} failed ({type(e).__name__}: {e}), "
                f"retrying in {delay:.1f}s"
            )
            await policy.sleep(delay)
