"""
Batch Worker - Queue Handoff for Background Batches

Triggers (cron ticks, admin requests) never start a batch themselves. They
submit a request to this worker and return at once; a single long-lived task
drains the queue and runs the batches one after another.

At most `max_pending` requests wait in the queue. Further submissions while the
queue is full are coalesced into the pending one and reported as not queued.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

logger = logging.getLogger(__name__)


class BatchWorker:
    """Single consumer of batch requests."""

    def __init__(self, runner: Callable[[str], Awaitable[Any]], max_pending: int = 1) -> None:
        """
        Args:
            runner: Coroutine function executing one batch, called with the trigger name
            max_pending: Number of requests allowed to wait behind the running one
        """
        self.runner = runner
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=max_pending)
        self._task: Optional[asyncio.Task] = None
        self._completed = 0
        self._closed = False
        # Cleared while the runner is executing a batch
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return self.queue.qsize()

    @property
    def completed(self) -> int:
        return self._completed

    def submit(self, trigger: str) -> bool:
        """
        Enqueue a batch request without waiting.

        Args:
            trigger: Name of what asked for the batch, passed to the runner

        Returns:
            True if queued, False if a request is already pending or the worker is stopping
        """
        if self._closed:
            logger.info("Batch worker stopping, request dropped: trigger=%s", trigger)
            return False

        try:
            self.queue.put_nowait(trigger)
        except asyncio.QueueFull:
            logger.info("Batch already pending, request coalesced: trigger=%s", trigger)
            return False

        logger.info("Batch request queued: trigger=%s, pending=%d", trigger, self.queue.qsize())
        return True

    async def run(self) -> None:
        """Drain the queue forever, one batch at a time."""
        while True:
            trigger = await self.queue.get()
            self._idle.clear()
            try:
                await self.runner(trigger)
            except Exception as e:
                logger.error("Batch run failed: trigger=%s, error=%s", trigger, str(e), exc_info=True)
            finally:
                self._completed += 1
                self.queue.task_done()
                self._idle.set()

    def start(self) -> asyncio.Task:
        """Start the consumer task on the running event loop."""
        if not self.running:
            self._closed = False
            self._task = asyncio.create_task(self.run(), name="batch-worker")
            logger.info("Batch worker started")
        return self._task

    async def join(self) -> None:
        """Wait until every queued request has been run."""
        await self.queue.join()

    async def stop(self, drain: bool = False) -> None:
        """
        Stop the consumer task.

        A batch that has already started always runs to completion first.
        New submissions are refused from here on.

        Args:
            drain: Also run queued requests before stopping; they are dropped otherwise
        """
        if self._task is None:
            return

        self._closed = True
        if drain and self.running:
            await self.queue.join()
        else:
            dropped = self._discard_pending()
            if dropped:
                logger.info("Dropped %d pending batch request(s)", dropped)

        if self.running:
            await self._idle.wait()

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Batch worker stopped (completed=%d)", self._completed)

    def _discard_pending(self) -> int:
        dropped = 0
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            self.queue.task_done()
            dropped += 1
