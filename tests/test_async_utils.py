"""
Tests for async_utils module.

Covers run_sync, call_connector, drain, gather_settled and run_in_batches.
"""

import asyncio
import threading

import pytest

from dok_sync.core.async_utils import (
    call_connector,
    drain,
    gather_settled,
    run_in_batches,
    run_sync,
)


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


async def test_run_sync_calls_function():
    """run_sync delegates to asyncio.to_thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


# ---------------------------------------------------------------------------
# call_connector
# ---------------------------------------------------------------------------


async def test_call_connector_runs_sync_in_thread():
    """Blocking callables run off the event loop thread."""
    loop_thread = threading.get_ident()

    def _which_thread():
        return threading.get_ident()

    assert await call_connector(_which_thread) != loop_thread


async def test_call_connector_awaits_coroutine_function():
    async def _async_add(a, b):
        await asyncio.sleep(0)
        return a + b

    assert await call_connector(_async_add, 1, b=2) == 3


async def test_call_connector_awaits_returned_awaitable():
    """A sync callable handing back a coroutine gets awaited too."""

    async def _value():
        return "done"

    def _factory():
        return _value()

    assert await call_connector(_factory) == "done"


async def test_call_connector_propagates_errors():
    def _boom():
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError, match="nope"):
        await call_connector(_boom)


# ---------------------------------------------------------------------------
# drain
# ---------------------------------------------------------------------------


async def test_drain_list_and_tuple():
    assert await drain([1, 2]) == [1, 2]
    assert await drain((1, 2)) == [1, 2]


async def test_drain_generator():
    def _gen():
        yield from range(3)

    assert await drain(_gen()) == [0, 1, 2]


async def test_drain_async_generator():
    async def _agen():
        for i in range(3):
            yield i

    assert await drain(_agen()) == [0, 1, 2]


async def test_drain_awaitable():
    async def _listing():
        return ["a"]

    assert await drain(_listing()) == ["a"]


@pytest.mark.parametrize("bad", [None, 42, "text", {"a": 1}])
async def test_drain_rejects_non_iterables(bad):
    with pytest.raises(TypeError, match="Expected a sequence or iterable"):
        await drain(bad)


# ---------------------------------------------------------------------------
# gather_settled / run_in_batches
# ---------------------------------------------------------------------------


async def test_gather_settled_returns_exceptions_in_order():
    async def _ok():
        return 1

    async def _fail():
        raise ValueError("x")

    results = await gather_settled([_ok(), _fail(), _ok()])
    assert results[0] == 1
    assert isinstance(results[1], ValueError)
    assert results[2] == 1


async def test_run_in_batches_preserves_order():
    async def _double(x):
        await asyncio.sleep(0)
        return x * 2

    assert await run_in_batches([1, 2, 3, 4, 5], _double, 2) == [2, 4, 6, 8, 10]


async def test_run_in_batches_settles_each_batch_first():
    events: list[str] = []

    async def _work(x):
        events.append(f"start {x}")
        await asyncio.sleep(0)
        events.append(f"end {x}")

    await run_in_batches([1, 2, 3], _work, 2)
    assert events.index("start 3") > events.index("end 1")
    assert events.index("start 3") > events.index("end 2")


async def test_run_in_batches_empty():
    async def _work(x):
        return x

    assert await run_in_batches([], _work, 3) == []


async def test_run_in_batches_invalid_size():
    async def _work(x):
        return x

    with pytest.raises(ValueError, match="batch_size"):
        await run_in_batches([1], _work, 0)
