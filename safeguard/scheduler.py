"""
Event-loop scheduler shared by every state machine.

All detector logic runs on one asyncio loop. Components never touch the loop
directly: they ask a scheduler for the current time, for a cancellable timer
handle, or to spawn a coroutine. Tests swap in a manually advanced scheduler.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class LoopScheduler:
    """
    Scheduler backed by a running asyncio event loop.
    Timestamps are loop time (monotonic seconds).
    """

    def __init__(self, loop=None):
        self.loop = loop or asyncio.get_running_loop()
        self._tasks = set()

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback, *args):
        """
        Arm a one-shot timer. The returned handle's cancel() is idempotent.
        """
        return self.loop.call_later(max(0.0, delay), callback, *args)

    def call_soon_threadsafe(self, callback, *args):
        return self.loop.call_soon_threadsafe(callback, *args)

    def spawn(self, coro):
        """
        Run a coroutine as a task on the loop.
        A reference is kept until it finishes so it cannot be collected early.
        """
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task failed: {exc!r}")

    async def drain(self):
        """
        Wait for every spawned task (used on shutdown)
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
