"""
Retry with exponential backoff for async oracle calls.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential: bool = True,
    retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Retry async function with exponential backoff.

    Args:
        func: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap
        exponential: Double the delay after each failure
        retryable_exceptions: Exceptions that trigger retry
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Function result

    Raises:
        Last exception if all retries fail
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except retryable_exceptions as e:
            if attempt == max_retries:
                logger.error(f"All {max_retries + 1} attempts failed: {e}")
                raise

            if exponential:
                delay = min(base_delay * (2 ** attempt), max_delay)
            else:
                delay = min(base_delay, max_delay)

            logger.warning(f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.1f}s")
            await sleep(delay)

    raise RuntimeError("unreachable")
