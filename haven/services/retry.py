"""
Retry with exponential back-off for storage and dispatch calls.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    description: str,
    max_attempts: int = 3,
    backoff_seconds: float = 0.5,
) -> T:
    """
    Run an async operation, retrying on any exception.

    Waits backoff_seconds, then doubles the wait after every failed attempt.
    The last exception is re-raised once all attempts are used.

    Args:
        operation: Zero-argument coroutine factory
        description: Used in log lines
        max_attempts: Total attempts (at least 1)
        backoff_seconds: Delay before the second attempt
    """
    max_attempts = max(max_attempts, 1)

    for attempt in range(max_attempts):
        try:
            return await operation()
        except Exception as e:
            logger.warning(f"[{description} retry {attempt + 1}/{max_attempts}] Error: {e}")
            if attempt == max_attempts - 1:
                raise
            await asyncio.sleep(backoff_seconds * (2 ** attempt))

    raise RuntimeError("unreachable")
