"""Linear backoff retry for async calls to the embedding API.

The wait after failed attempt ``n`` is ``n * step_seconds``: 0.5s, then
1.0s with the default step, without jitter.  No wait follows the final
attempt.

Usage::

    from infrastructure.retry import retry_async

    vector = await retry_async(
        send_once,
        request,
        max_attempts=3,
        step_seconds=0.5,
        exceptions=(EmbeddingTransportError,),
    )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from core.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


def linear_backoff(attempt: int, step_seconds: float) -> float:
    """Seconds to wait after failed *attempt* (1-based)."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return attempt * step_seconds


async def retry_async(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    step_seconds: float = 0.5,
    exceptions: tuple[type[Exception], ...] = (OSError,),
    sleep: Sleep = asyncio.sleep,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Await ``fn(*args)`` until it succeeds or *max_attempts* is reached.

    Args:
        fn: Coroutine function performing one attempt.
        max_attempts: Total attempts including the first try.
        step_seconds: Linear backoff unit.
        exceptions: Exception types that trigger another attempt.  Anything
            else propagates immediately.
        sleep: Awaitable sleep, injectable for tests.
        on_retry: Called with ``(attempt, exc, wait)`` before each wait.

    Returns:
        Whatever the first successful attempt returned.

    Raises:
        RetryExhaustedError: If every attempt raised one of *exceptions*.
    """
    last_exc: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return await fn(*args)
        except exceptions as exc:
            last_exc = exc
            if attempt == max_attempts:
                break
            wait = linear_backoff(attempt, step_seconds)
            logger.warning(
                "retry: %s attempt %d/%d failed (%s), retrying in %.2fs",
                getattr(fn, "__name__", "call"),
                attempt,
                max_attempts,
                exc,
                wait,
            )
            if on_retry is not None:
                on_retry(attempt, exc, wait)
            await sleep(wait)
    raise RetryExhaustedError(max_attempts, last_exc) from last_exc
