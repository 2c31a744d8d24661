"""Retry logic, exponential backoff and timeout utilities."""

import asyncio
import random
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def exponential_backoff(attempt: int, base_delay: float = 1.0, max_delay: float = 60.0) -> float:
    """Calculate exponential backoff delay with jitter."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    # Add jitter to prevent thundering herd
    jitter = random.uniform(0, delay * 0.1)
    return delay + jitter


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """Await ``operation()`` until it succeeds or retries are exhausted.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_retries: Number of retries after the first attempt
        base_delay: Initial backoff delay in seconds
        max_delay: Upper bound for a single backoff delay
        exceptions: Exception types that trigger a retry
        label: Name used in log messages

    Returns:
        The result of the first successful attempt
    """
    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except exceptions as e:
            if attempt == max_retries:
                if max_retries:
                    logger.error(f"{label} failed after {max_retries} retries: {e}")
                raise

            delay = exponential_backoff(attempt, base_delay, max_delay)
            logger.warning(
                f"Attempt {attempt + 1} of {label} failed: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError(f"{label} was never attempted")


async def with_timeout(awaitable: Awaitable[T], seconds: Optional[float], label: str) -> T:
    """Await with an upper bound; ``None`` or a non-positive value disables it."""
    if not seconds or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise TimeoutError(f"{label} timed out after {seconds:g}s") from None
