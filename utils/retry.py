import asyncio
import functools
import logging
from typing import Awaitable, Callable, TypeVar

from config import settings
from core.exceptions import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_reads(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """
    Retry an idempotent read on StorageError with exponential backoff.
    Never apply to writes: a failed write may have landed and must be re-confirmed by a fresh read.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> T:
        attempts = max(settings.storage_read_retries, 0) + 1
        delay = settings.storage_retry_base_delay
        for attempt in range(1, attempts + 1):
            try:
                return await func(*args, **kwargs)
            except StorageError as e:
                if not e.retryable or attempt == attempts:
                    raise
                logger.warning(
                    "Read %s failed (attempt %d/%d), retrying in %.2fs",
                    func.__qualname__, attempt, attempts, delay,
                )
                await asyncio.sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")

    return wrapper
