"""
Retry helper for async operations.

Provides retry with exponential backoff for outbound API calls. The caller
can supply a server-provided delay (e.g. HTTP Retry-After) per failure.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 5,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
    delay_hint: Optional[Callable[[BaseException], Optional[float]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call `func` until it succeeds or `max_attempts` is used up.

    Args:
        func: Zero-argument coroutine factory
        max_attempts: Maximum number of attempts
        delay: Initial delay between attempts (seconds)
        backoff: Multiplier applied to the delay after each failed attempt
        exceptions: Exception types that trigger a retry
        delay_hint: Returns a server-provided delay for a failure, or None
        sleep: Sleep coroutine (injectable for tests)

    The last exception is re-raised once attempts are exhausted.
    """
    current_delay = delay
    attempt = 0

    while True:
        try:
            return await func()
        except exceptions as e:
            attempt += 1
            if attempt >= max_attempts:
                logger.error(
                    f"{getattr(func, '__name__', 'call')} failed after {max_attempts} attempts",
                    extra={"attempts": max_attempts, "error": str(e)},
                )
                raise

            hinted = delay_hint(e) if delay_hint else None
            if hinted is not None:
                current_delay = hinted
                logger.warning(f"Rate limited. Retrying in {current_delay:.1f}s...")
            else:
                logger.warning(
                    f"{getattr(func, '__name__', 'call')} failed, retrying in {current_delay:.1f}s",
                    extra={"attempt": attempt, "max_attempts": max_attempts, "error": str(e)},
                )

            await sleep(current_delay)
            current_delay *= backoff
