"""Async utilities for driving connectors from the reconciliation event loop.

Connectors may be written with plain blocking methods (e.g. ``requests``
based clients) or with ``async def`` methods.  These helpers let the core
treat both uniformly without blocking the event loop.
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterable, Awaitable, Iterable
from typing import Any, Callable, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In a connector method:
        content = await run_sync(path.read_bytes)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def call_connector(
    func: Callable[..., Any], *args: Any, **kwargs: Any
) -> Any:
    """Call a connector method that may be sync or async.

    Coroutine functions are awaited directly on the loop.  Plain callables
    run in a worker thread; if they hand back an awaitable it is awaited
    as well.

    Args:
        func: Connector method.
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        The (awaited) result of the call.
    """
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    result = await asyncio.to_thread(func, *args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def drain(source: Any) -> list:
    """Materialise a connector listing into a list.

    Accepts an awaitable, an async iterable, an eager sequence, or a
    lazy iterable (generator).  Lazy iterables are consumed in a worker
    thread since producing each item may block on I/O.

    Raises:
        TypeError: If *source* is none of the supported shapes.
    """
    if inspect.isawaitable(source):
        source = await source
    if isinstance(source, AsyncIterable):
        return [item async for item in source]
    if isinstance(source, (list, tuple)):
        return list(source)
    if isinstance(source, Iterable) and not isinstance(
        source, (str, bytes, dict)
    ):
        return await asyncio.to_thread(list, source)
    raise TypeError(
        f"Expected a sequence or iterable of metadata, got {type(source).__name__}"
    )


async def gather_settled(
    coros: Sequence[Awaitable[T]],
) -> list[T | BaseException]:
    """Run awaitables concurrently and wait for all of them to settle.

    Unlike a plain ``asyncio.gather``, a failure does not propagate:
    exceptions are returned in place of results, in input order.
    """
    return list(await asyncio.gather(*coros, return_exceptions=True))


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: int,
    delay: float = 0.0,
) -> list[R | BaseException]:
    """Process *items* in fixed-size batches with bounded concurrency.

    All items of one batch start concurrently; the next batch only starts
    once every item of the current batch has settled, after sleeping
    *delay* seconds.  No sleep follows the last batch.

    Args:
        items: Items to process, in order.
        worker: Coroutine function applied to each item.
        batch_size: Maximum number of in-flight workers.
        delay: Pause between batches, in seconds.

    Returns:
        Results (or exceptions) in the same order as *items*.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    results: list[R | BaseException] = []
    for start in range(0, len(items), batch_size):
        if start and delay > 0:
            await asyncio.sleep(delay)
        batch = items[start : start + batch_size]
        logger.debug(
            "Running batch %d-%d of %d",
            start + 1,
            start + len(batch),
            len(items),
        )
        results.extend(await gather_settled([worker(i) for i in batch]))
    return results
