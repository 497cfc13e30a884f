"""
Retry utilities for runtime and asset loading.

Provides exponential backoff delay calculation and an async retry helper
that records every failed attempt.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def backoff_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 4.0,
    exponential_base: float = 2.0,
) -> float:
    """
    Delay before retry number `attempt` (1-based): initial, 2x initial, ... capped at max_delay.
    """
    return min(initial_delay * (exponential_base ** (attempt - 1)), max_delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    label: str,
    max_retries: int = 2,
    initial_delay: float = 1.0,
    max_delay: float = 4.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Optional[SleepFunc] = None,
    failures: Optional[List[str]] = None,
) -> T:
    """
    Call func up to max_retries + 1 times with exponential backoff between tries.

    Args:
        func: Zero-argument coroutine factory
        label: Name used in log lines and failure records
        max_retries: Number of retries after the first attempt
        initial_delay: Delay before the first retry (seconds)
        max_delay: Maximum delay between retries (seconds)
        exceptions: Exception types that trigger a retry
        sleep: Awaitable sleep (default: asyncio.sleep)
        failures: If given, "label (attempt n): message" is appended per failure

    Returns:
        Result of the first successful call

    Raises:
        The last exception once every attempt has failed
    """
    sleep = sleep or asyncio.sleep
    total_attempts = max_retries + 1

    for attempt in range(1, total_attempts + 1):
        try:
            return await func()
        except exceptions as e:
            if failures is not None:
                failures.append(f"{label} (attempt {attempt}): {e}")

            if attempt < total_attempts:
                delay = backoff_delay(attempt, initial_delay, max_delay)
                logger.warning(
                    f"{label}: Attempt {attempt}/{total_attempts} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await sleep(delay)
            else:
                logger.error(f"{label}: All {total_attempts} attempts failed. Last error: {e}")
                raise

    raise RuntimeError("unreachable")
