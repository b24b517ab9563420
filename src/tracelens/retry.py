"""Retry with exponential backoff for provider calls made outside the live analysis path."""

from __future__ import annotations

import asyncio
import secrets
from functools import wraps
from typing import TYPE_CHECKING, TypeVar

from tracelens.core.exceptions import ProviderError
from tracelens.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = get_logger(__name__)


def is_retryable(error: Exception) -> bool:
    """Provider errors are retried only when transient; other listed types always are."""
    if isinstance(error, ProviderError):
        return error.transient
    return True


def backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter: bool) -> float:
    """Delay before retry number ``attempt + 1``, capped at ``max_delay``."""
    delay = min(base_delay * (2**attempt), max_delay)
    if jitter:
        # secrets.randbelow returns [0, n), so the factor lies in [0.5, 1.5)
        delay = delay * (0.5 + secrets.randbelow(1000) / 1000)
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (ProviderError,),
    should_retry: Callable[[Exception], bool] = is_retryable,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator for retrying async provider calls with exponential backoff.

    A failure is retried when it is one of ``retryable_exceptions`` and
    ``should_retry`` accepts it. By default that means a ProviderError
    flagged as transient (rate limit, timeout, connection or server error);
    authentication failures and malformed requests fail on the first attempt.

    Args:
        max_retries: Maximum number of retry attempts.
        base_delay: Initial delay between retries in seconds.
        max_delay: Maximum delay between retries in seconds.
        jitter: Whether to add randomness to delay.
        retryable_exceptions: Exception types considered for retry.
        should_retry: Final say on whether a caught exception is retried.

    Returns:
        Decorated async function with retry logic.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if not should_retry(e):
                        logger.info(
                            "retry_skipped",
                            function=func.__name__,
                            reason="permanent failure",
                            error=str(e),
                        )
                        raise
                    if attempt >= max_retries:
                        logger.error(
                            "retry_exhausted",
                            function=func.__name__,
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            error=str(e),
                        )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay, jitter)
                    attempt += 1
                    logger.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt,
                        max_retries=max_retries,
                        delay_seconds=round(delay, 2),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
