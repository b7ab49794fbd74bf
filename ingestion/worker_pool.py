"""
Bounded worker pool for job executions.

A fixed number of worker tasks consume a bounded asyncio.Queue. submit()
never waits: when the queue is full it raises PoolSaturatedError and the
caller decides what to do with the work (the scheduler defers it to its
next tick).
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple
import logging

from core.exceptions import PoolSaturatedError

logger = logging.getLogger(__name__)

WorkItem = Tuple[Callable[..., Awaitable[Any]], Tuple[Any, ...], Optional[Callable[[], None]]]


class WorkerPool:
    def __init__(self, size: int, queue_size: int = 100):
        if size < 1:
            raise ValueError("Worker pool size must be >= 1")
        if queue_size < 1:
            raise ValueError("Worker pool queue size must be >= 1")

        self.size = size
        self.queue_size = queue_size
        self._queue: Optional["asyncio.Queue[WorkItem]"] = None
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Work items waiting for a free worker."""
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self.running:
            return

        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"job-worker-{index}")
            for index in range(self.size)
        ]
        logger.info(f"Worker pool started: {self.size} workers, queue size {self.queue_size}")

    def submit(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        on_done: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Enqueue ``fn(*args)`` without waiting.

        Args:
            fn: Coroutine function to run on a worker
            on_done: Called once the work item settles, success or failure

        Raises:
            PoolSaturatedError: The queue is full or the pool is not running
        """
        if not self.running:
            raise PoolSaturatedError("Worker pool is not running")

        try:
            self._queue.put_nowait((fn, args, on_done))
        except asyncio.QueueFull:
            raise PoolSaturatedError(
                "Worker pool queue is full",
                context={"size": self.size, "queue_size": self.queue_size}
            )

    async def _worker(self, index: int) -> None:
        while True:
            fn, args, on_done = await self._queue.get()
            try:
                await fn(*args)
            except Exception:
                logger.exception(f"Worker {index}: unhandled error in {getattr(fn, '__name__', fn)}")
            finally:
                if on_done is not None:
                    on_done()
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every submitted item has settled."""
        if self._queue is not None:
            await self._queue.join()

    async def shutdown(self) -> None:
        """Drain queued work, then stop the workers."""
        if not self.running:
            return

        await self.join()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Worker pool stopped")
