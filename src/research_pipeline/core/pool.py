"""Bounded worker pool used by the fetch and synthesize stages."""

import asyncio
import contextlib
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from research_pipeline.errors import BatchCancelledError

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """Run one task per item with at most ``size`` tasks active at once.

    Every task writes only its own slot of a pre-sized result list, so
    results keep the input order whatever the completion order is.
    """

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError("Pool size must be positive")
        self.size = size

    async def map(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        on_cancel: Callable[[T, BatchCancelledError], R],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[R]:
        """Apply ``worker`` to every item and return index-aligned results.

        ``worker`` records item failures in its result rather than raising.
        When ``cancel_event`` is set, items still waiting for a slot and
        items in flight resolve through ``on_cancel`` instead. If a worker
        raises anyway, the remaining tasks are cancelled and awaited before
        the exception propagates.
        """
        if not items:
            return []

        semaphore = asyncio.Semaphore(self.size)
        results: list[Optional[R]] = [None] * len(items)

        async def run(index: int, item: T) -> None:
            if not await self._acquire(semaphore, cancel_event):
                results[index] = on_cancel(item, BatchCancelledError())
                return
            try:
                completed, value = await self._run_cancellable(worker(item), cancel_event)
                if completed:
                    results[index] = value
                else:
                    results[index] = on_cancel(item, BatchCancelledError())
            finally:
                semaphore.release()

        tasks = [asyncio.ensure_future(run(index, item)) for index, item in enumerate(items)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return results  # type: ignore[return-value]

    @staticmethod
    async def _acquire(semaphore: asyncio.Semaphore, cancel_event: Optional[asyncio.Event]) -> bool:
        """Take a slot, giving up if the batch is cancelled first."""
        if cancel_event is None:
            await semaphore.acquire()
            return True
        if cancel_event.is_set():
            return False

        acquire_task = asyncio.ensure_future(semaphore.acquire())
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {acquire_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            acquire_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if acquire_task in done and not cancel_event.is_set():
            return True

        acquire_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await acquire_task
        if not acquire_task.cancelled():
            # The slot was granted while the cancellation was being handled.
            semaphore.release()
        return False

    @staticmethod
    async def _run_cancellable(
        work: Awaitable[R], cancel_event: Optional[asyncio.Event]
    ) -> tuple[bool, Optional[R]]:
        """Await ``work`` unless the batch is cancelled while it runs."""
        if cancel_event is None:
            return True, await work
        if cancel_event.is_set():
            if asyncio.iscoroutine(work):
                work.close()
            return False, None

        work_task = asyncio.ensure_future(work)
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {work_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if work_task in done:
            return True, work_task.result()

        work_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work_task
        return False, None
