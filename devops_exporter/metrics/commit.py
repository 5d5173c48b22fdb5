"""
Commit Queue

Single-writer handoff between concurrent collection cycles and the shared
registry. Cycles enqueue commit tasks; one consumer task applies them in
arrival order, so two commits never touch the registry at the same time.

Usage:
    commits = CommitQueue(maxsize=1000)
    commits.start()

    await commits.put(lambda: metric_set.commit_all(registry), "release/p1")

    await commits.drain()  # wait until everything queued so far is applied
    await commits.stop()
"""

import asyncio
from collections.abc import Callable
from typing import Any

from devops_exporter.core.logging_config import get_logger
from devops_exporter.utils.error_handling import log_and_continue

logger = get_logger(__name__)

CommitTask = Callable[[], Any]


class CommitQueue:
    """
    Bounded FIFO of commit tasks drained by a single consumer.

    A task that raises is logged and skipped; the consumer keeps running.

    Attributes:
        applied: Number of tasks applied successfully
        failed: Number of tasks that raised
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: asyncio.Queue[tuple[str, CommitTask]] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task[None] | None = None
        self.applied = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        if self.running:
            return
        self._worker = asyncio.create_task(self._consume(), name="commit-queue")

    async def put(self, task: CommitTask, description: str = "") -> None:
        """
        Enqueue a commit task, waiting while the queue is full.

        Args:
            task: Zero-argument callable that mutates the registry
            description: Label for logs (e.g. "release/<project id>")
        """
        await self._queue.put((description, task))

    async def _consume(self) -> None:
        while True:
            description, task = await self._queue.get()
            try:
                task()
                self.applied += 1
            except Exception as e:
                self.failed += 1
                log_and_continue(logger, e, {"commit": description}, "Metric commit")
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every task enqueued so far has been applied."""
        await self._queue.join()

    async def stop(self) -> None:
        """Apply pending tasks, then stop the consumer."""
        if self._worker is None:
            return
        if self.running:
            await self.drain()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
