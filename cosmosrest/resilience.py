"""
Retry policy for callers of the resource client.

The client itself never retries. Callers that want idempotent retries
(upserts, queries, listings) wrap their calls with `with_retry`; plain
creates should not be retried since a lost response can leave the
document written.

Author: cosmosrest Team
Date: 2026-10-15
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional

from .exceptions import RemoteRejectedError, TransportError

logger = logging.getLogger(__name__)

# Throttled, request timeout, write conflict retry-with, service unavailable
TRANSIENT_STATUS_CODES = frozenset({408, 429, 449, 503})


@dataclass
class RetryPolicy:
    """Exponential backoff settings."""

    max_attempts: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0
    backoff_multiplier: float = 2.0

    def delay_for(self, attempt: int, error: Optional[Exception] = None) -> float:
        """
        Seconds to wait after a failed attempt.

        A service-provided x-ms-retry-after-ms wins over the computed
        backoff, capped at max_backoff.
        """
        if isinstance(error, RemoteRejectedError) and error.retry_after_ms is not None:
            return min(error.retry_after_ms / 1000.0, self.max_backoff)
        return min(self.initial_backoff * (self.backoff_multiplier ** (attempt - 1)), self.max_backoff)


def is_transient_error(error: Exception) -> bool:
    """Return True for failures that may succeed when repeated."""
    if isinstance(error, TransportError):
        return True
    if isinstance(error, RemoteRejectedError):
        return error.status_code in TRANSIENT_STATUS_CODES or error.is_throttled
    return False


def with_retry(
    policy: Optional[RetryPolicy] = None,
    retry_on: Optional[Callable[[Exception], bool]] = None
):
    """
    Decorator adding retry with exponential backoff to an async callable.

    Args:
        policy: Backoff settings (default: RetryPolicy())
        retry_on: Custom predicate deciding whether an error is retryable

    Usage:
        @with_retry(RetryPolicy(max_attempts=5))
        async def upsert(...):
            ...
    """
    policy = policy or RetryPolicy()

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            operation_name = func.__name__

            for attempt in range(1, policy.max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    should_retry = retry_on(e) if retry_on else is_transient_error(e)
                    if not should_retry or attempt >= policy.max_attempts:
                        logger.error(
                            f"{operation_name} failed after {attempt} attempt(s) "
                            f"(retryable={should_retry}): {type(e).__name__}: {e}"
                        )
                        raise

                    delay = policy.delay_for(attempt, e)
                    logger.warning(
                        f"{operation_name} failed on attempt {attempt}/{policy.max_attempts}, "
                        f"retrying in {delay:.2f}s: {type(e).__name__}"
                    )
                    await asyncio.sleep(delay)
                    continue

                if attempt > 1:
                    logger.info(f"{operation_name} succeeded after {attempt} attempts")
                return result

        return wrapper
    return decorator
