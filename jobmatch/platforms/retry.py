"""Async retry with exponential backoff for adapter HTTP calls.

Retry-After (seconds) on a 429 response overrides the computed delay.
"""

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableError(Exception):
    """Raised by a wrapped call to request another attempt.

    retry_after, when set, is the server-requested wait in seconds.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds. HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return max(0.0, seconds)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    backoff_factor: float = 2.0,
    jitter: bool = True,
) -> float:
    """Delay before the next attempt (attempt is 1-based)."""
    delay = min(base_delay * (backoff_factor ** (attempt - 1)), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_async(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: tuple[type[BaseException], ...] = (RetryableError,),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator: retries the wrapped coroutine function with exponential backoff.

    Exceptions outside `retryable` propagate immediately. After the last
    attempt the final exception propagates.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = getattr(fn, "__qualname__", repr(fn))

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await fn(*args, **kwargs)
                except retryable as exc:
                    if attempt == max_attempts:
                        logger.debug(
                            "%s failed after %d attempts: %s",
                            name, max_attempts, exc,
                        )
                        raise
                    retry_after = getattr(exc, "retry_after", None)
                    if retry_after is not None:
                        delay = retry_after
                    else:
                        delay = backoff_delay(
                            attempt, base_delay, max_delay, backoff_factor, jitter,
                        )
                    logger.debug(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        name, attempt, max_attempts, exc, delay,
                    )
                    await asyncio.sleep(delay)
            msg = "max_attempts must be >= 1"
            raise ValueError(msg)

        return wrapper

    return decorator
