"""
Retry wrapper for external calls.
Retries transient failures with exponential backoff; everything else is raised at once.
"""

import asyncio
import re
from typing import Awaitable, Callable, TypeVar

import aiohttp

from ..errors import UpstreamError
from .logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")

_TRANSIENT_MESSAGE = re.compile(
    r"timed? ?out|ECONNRESET|connection reset|socket hang up|rate.?limit|too many requests",
    re.IGNORECASE
)


def _is_transient_status(status: int) -> bool:
    return status == 429 or status >= 500


def is_transient_error(error: BaseException) -> bool:
    """
    Decide whether an error is worth retrying.

    Timeouts, dropped connections, HTTP 429 and 5xx are transient.
    4xx responses and validation failures are not.
    """
    if isinstance(error, asyncio.TimeoutError):
        return True
    if isinstance(error, aiohttp.ClientResponseError):
        return _is_transient_status(error.status)
    if isinstance(error, UpstreamError):
        return _is_transient_status(error.status)
    if isinstance(error, (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError)):
        return True
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return False
    return bool(_TRANSIENT_MESSAGE.search(str(error)))


async def retryable_call(
    func: Callable[[], Awaitable[T]],
    *,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    description: str = "call"
) -> T:
    """
    Await func() up to max_attempts times.

    Args:
        func: Zero-argument coroutine factory
        is_retryable: Predicate deciding whether an error is retried
        max_attempts: Total attempts including the first
        base_delay: Delay before the second attempt; doubles each time
        description: Label used in log lines

    Returns:
        The first successful result
    """
    for attempt in range(max_attempts):
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e) or attempt == max_attempts - 1:
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"{description} attempt {attempt + 1}/{max_attempts} failed: {e}; retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError("max_attempts must be at least 1")
