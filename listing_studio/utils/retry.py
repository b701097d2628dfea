"""Exponential-backoff retry for coroutines."""

import asyncio
import functools
from typing import Awaitable, Callable, Optional, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def retry_async(
    max_attempts: int = 3,
    backoff_factor: float = 2.0,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: tuple = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
):
    """
    Retry an async function with exponential backoff.

    The delay starts at ``initial_delay`` and is multiplied by
    ``backoff_factor`` after every failed attempt, up to ``max_delay``. When
    attempts run out the last error is re-raised as is.

    Args:
        max_attempts: Total attempts, including the first call
        backoff_factor: Multiplier for delay between retries
        initial_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exceptions: Exception types that may be retried
        retry_if: Predicate deciding whether a caught error is retryable;
            rejected errors propagate immediately
        sleep: Awaitable sleep, replaceable in tests

    Example:
        @retry_async(max_attempts=3, retry_if=is_transient)
        async def call_capability():
            ...
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = getattr(func, "__name__", type(func).__name__)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            attempt = 0
            delay = initial_delay

            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    context = {
                        "function": name,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }

                    if retry_if is not None and not retry_if(e):
                        logger.info(f"{name} raised a non-retryable error", extra=context)
                        raise

                    if attempt >= max_attempts:
                        logger.error(f"{name} gave up after {attempt} attempts", extra=context)
                        raise

                    logger.warning(
                        f"{name} failed (attempt {attempt}/{max_attempts}), retrying in {delay}s",
                        extra={**context, "delay_seconds": delay}
                    )
                    await sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)

        return wrapper
    return decorator
