"""
Bounded exponential backoff for transient downstream failures.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from support_relay.errors import TransientDownstreamError

# Setup logger for this module
logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (1-based), doubling up to ``max_delay``."""
    return min(max_delay, base_delay * (2 ** (attempt - 1)))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 8.0,
    retry_on: Tuple[Type[BaseException], ...] = (TransientDownstreamError,),
    description: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` is reached.

    Only exceptions listed in ``retry_on`` are retried; the last one is
    re-raised once the attempts are used up.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error(f"{description} failed after {attempt} attempts: {e}")
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"{description} failed (attempt {attempt}/{max_attempts}): {e}. "
                f"Retrying in {delay:.1f}s"
            )
            await sleep(delay)
