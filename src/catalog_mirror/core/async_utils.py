"""Async helpers for running blocking HTTP calls off the event loop."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Module-level semaphore, initialized at startup
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 5) -> None:
    """Bound the number of concurrent API requests. Call once at startup."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info(
        "API request semaphore initialized: max_parallel=%d",
        max_parallel,
    )


def reset_semaphore() -> None:
    global _semaphore
    _semaphore = None


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread.

    Example:
        client = CatalogClient(config)
        themes = await run_sync(client.fetch_collection, EntityKind.THEME)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Like ``run_sync`` but bounded by the request semaphore.

    Unbounded when ``init_semaphore()`` has not been called.

    Cancelling the awaiting task does not stop the worker thread; the
    request runs to completion and its result is dropped.
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)
