"""
PURPOSE: Decorators for retry logic and execution timing around outbound calls.
Used by the Google Sheets client and the sheet reconciler.
"""

import asyncio
import functools
import time
from typing import Any, Callable, Tuple

from momentum_sync.utils.logger import get_logger

logger = get_logger(__name__)


def retry(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: Tuple[type, ...] = (Exception,)
) -> Callable:
    """
    PURPOSE: Retry decorator with exponential backoff for async functions.
    Automatically retries on specified exceptions up to max_retries times.

    Args:
        max_retries: Maximum number of retry attempts (default 3).
        delay: Initial delay between retries in seconds (default 1.0).
        backoff: Exponential backoff multiplier (default 2.0).
        exceptions: Tuple of exception types to catch and retry on (default (Exception,)).

    Returns:
        Callable: Decorated coroutine function with retry logic.
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"retry() expects a coroutine function, got {func.__name__}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            current_delay = delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_retries:
                        logger.info(
                            "retry_scheduled",
                            function=func.__name__,
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            delay=current_delay,
                            error=str(e)
                        )
                        await asyncio.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.error(
                            "retry_exhausted",
                            function=func.__name__,
                            error=str(e)
                        )

            raise last_exception

        return async_wrapper

    return decorator


def timed(event: str) -> Callable:
    """
    PURPOSE: Timing decorator that logs coroutine execution time in milliseconds.

    Args:
        event: Log event name emitted once the call finishes (success or failure).

    Returns:
        Callable: Decorated coroutine function with execution timing.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.debug(
                    event,
                    function=func.__name__,
                    elapsed_ms=f"{elapsed_ms:.2f}"
                )

        return async_wrapper

    return decorator
