"""
Detached Tasks

Fire-and-forget units of work whose outcome is only observed through
logging. Used for cache write-through so a response never waits on Redis.
"""

import asyncio
import logging
from typing import Any, Awaitable, Set


logger = logging.getLogger(__name__)


class DetachedTasks:
    """
    Spawns background tasks and keeps a reference until they finish.

    The event loop only holds weak references to tasks, so an unreferenced
    task can be collected mid-flight.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, work: Awaitable[Any], description: str) -> asyncio.Task:
        """Schedule work on the running loop and return immediately."""
        task = asyncio.ensure_future(work)
        self._tasks.add(task)

        def _done(finished: asyncio.Task):
            self._tasks.discard(finished)
            if finished.cancelled():
                logger.warning(f"Background task cancelled: {description}")
                return
            error = finished.exception()
            if error is not None:
                self.failed += 1
                logger.warning(f"Background task failed: {description}: {error}")
            elif finished.result() is False:
                self.failed += 1
                logger.warning(f"Background task reported failure: {description}")
            else:
                self.completed += 1

        task.add_done_callback(_done)
        return task

    async def drain(self, timeout: float = 5.0):
        """Wait for in-flight tasks, e.g. at shutdown."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} background tasks at shutdown")
