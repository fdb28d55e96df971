"""
Retry Utilities
Provides retry logic for external API calls with configurable backoff
"""

import asyncio
from typing import Optional, Callable, Any, Type, Tuple, Awaitable

from voice_receptionist.core.logging import get_logger

logger = get_logger(__name__)

BACKOFF_FIXED = "fixed"
BACKOFF_LINEAR = "linear"
BACKOFF_EXPONENTIAL = "exponential"


class RetryError(Exception):
    """Raised when all retry attempts fail"""
    def __init__(self, message: str, last_exception: Optional[Exception] = None):
        super().__init__(message)
        self.last_exception = last_exception


def compute_delay(attempt: int, delay: float, backoff: str, backoff_multiplier: float = 2.0) -> float:
    """
    Delay to wait after a failed attempt

    Args:
        attempt: 1-based number of the attempt that just failed
        delay: Base delay in seconds
        backoff: One of fixed, linear, exponential
        backoff_multiplier: Multiplier for exponential backoff

    Returns:
        Seconds to sleep before the next attempt
    """
    if backoff == BACKOFF_LINEAR:
        return delay * attempt
    if backoff == BACKOFF_EXPONENTIAL:
        return delay * (backoff_multiplier ** (attempt - 1))
    return delay


async def retry_async_operation(
    operation: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    delay: float = 1.0,
    backoff: str = BACKOFF_EXPONENTIAL,
    backoff_multiplier: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    accept: Optional[Callable[[Any], bool]] = None,
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> Any:
    """
    Execute an async operation with retry logic

    Args:
        operation: Async callable to execute
        max_retries: Maximum number of attempts
        delay: Base delay between attempts
        backoff: Backoff strategy (fixed, linear, exponential)
        backoff_multiplier: Multiplier for exponential backoff
        exceptions: Exception types to catch
        accept: Optional predicate; a result it rejects counts as a failed attempt
        operation_name: Name for logging purposes
        sleep: Awaitable sleep function

    Returns:
        Result of the operation

    Raises:
        RetryError: If all attempts fail
    """
    last_exception = None

    for attempt in range(1, max_retries + 1):
        try:
            result = await operation()
            if accept is None or accept(result):
                return result
            logger.warning(
                f"Attempt {attempt}/{max_retries} for {operation_name} returned an unusable result"
            )
        except exceptions as e:
            last_exception = e
            logger.warning(
                f"Attempt {attempt}/{max_retries} failed for {operation_name}: {e}"
            )

        if attempt < max_retries:
            wait = compute_delay(attempt, delay, backoff, backoff_multiplier)
            logger.info(f"Retrying {operation_name} in {wait:.1f}s...")
            await sleep(wait)
        else:
            logger.error(f"All {max_retries} attempts failed for {operation_name}")

    raise RetryError(
        f"Failed {operation_name} after {max_retries} attempts",
        last_exception=last_exception
    )
