"""Async helpers for running the blocking store client off the event loop.

The event loop is the repository's single execution context: cache writes
happen there, while blocking HTTP calls are pushed to worker threads and
their results are resumed back on the loop by ``await``.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Bounds concurrent store requests across every repository in the process.
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 5) -> None:
    """Create the process-wide request semaphore.  Call once at startup."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info(
        "Store request semaphore initialized: max_parallel=%d",
        max_parallel,
    )


def reset_semaphore() -> None:
    """Drop the request semaphore (requests become unbounded)."""
    global _semaphore
    _semaphore = None


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread, without the semaphore.

    Example:
        version = await run_sync(client.validate_connection)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread, bounded by the semaphore.

    Falls back to unbounded if the semaphore was never initialized.
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Await *coros* concurrently and return their results in order.

    Each coroutine is expected to go through ``run_sync_limited`` itself;
    the first exception propagates.
    """
    return list(await asyncio.gather(*coros))
