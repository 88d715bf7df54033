"""Tests for the bounded worker pool."""

import asyncio

import pytest

from research_pipeline.core import WorkerPool
from research_pipeline.errors import BatchCancelledError


def test_pool_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        WorkerPool(0)


@pytest.mark.asyncio
async def test_results_keep_input_order() -> None:
    """Later items finish first but land in their own slots."""
    pool = WorkerPool(4)

    async def worker(delay: float) -> float:
        await asyncio.sleep(delay)
        return delay

    delays = [0.2, 0.1, 0.0, 0.05]
    results = await pool.map(delays, worker, lambda item, error: -1.0)

    assert results == delays


@pytest.mark.asyncio
async def test_pool_bounds_concurrency() -> None:
    pool = WorkerPool(2)
    active = 0
    peak = 0

    async def worker(index: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.02)
        active -= 1
        return index

    results = await pool.map(list(range(8)), worker, lambda item, error: -1)

    assert results == list(range(8))
    assert peak == 2


@pytest.mark.asyncio
async def test_empty_input_returns_empty_list() -> None:
    pool = WorkerPool(1)

    async def worker(item: int) -> int:
        raise AssertionError("should not be called")

    assert await pool.map([], worker, lambda item, error: item) == []


@pytest.mark.asyncio
async def test_cancel_resolves_waiting_and_running_items() -> None:
    pool = WorkerPool(1)
    cancel_event = asyncio.Event()
    started: list[int] = []

    async def worker(index: int) -> str:
        started.append(index)
        await asyncio.sleep(10)
        return "done"

    def on_cancel(index: int, error: BatchCancelledError) -> str:
        return f"cancelled: {error.message}"

    asyncio.get_running_loop().call_later(0.05, cancel_event.set)
    results = await asyncio.wait_for(
        pool.map([0, 1, 2], worker, on_cancel, cancel_event), timeout=2
    )

    assert results == ["cancelled: batch cancelled"] * 3
    assert started == [0]


@pytest.mark.asyncio
async def test_already_cancelled_batch_runs_nothing() -> None:
    pool = WorkerPool(3)
    cancel_event = asyncio.Event()
    cancel_event.set()
    calls = 0

    async def worker(index: int) -> int:
        nonlocal calls
        calls += 1
        return index

    results = await pool.map([1, 2], worker, lambda item, error: -item, cancel_event)

    assert results == [-1, -2]
    assert calls == 0


@pytest.mark.asyncio
async def test_unset_cancel_event_does_not_interfere() -> None:
    pool = WorkerPool(2)

    async def worker(index: int) -> int:
        await asyncio.sleep(0)
        return index * 10

    results = await pool.map([1, 2, 3], worker, lambda item, error: -1, asyncio.Event())

    assert results == [10, 20, 30]


@pytest.mark.asyncio
async def test_raising_worker_cancels_siblings() -> None:
    pool = WorkerPool(3)
    cancelled: list[int] = []

    async def worker(index: int) -> int:
        if index == 0:
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(index)
            raise
        return index

    with pytest.raises(RuntimeError, match="boom"):
        await asyncio.wait_for(pool.map([0, 1, 2], worker, lambda item, error: -1), timeout=2)

    assert sorted(cancelled) == [1, 2]
