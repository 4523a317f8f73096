"""
Periodic task runner for the kitchen feed.

Runs an async callback every ``interval`` seconds on the current event
loop. A tick is skipped while the previous one is still running, so a
slow store never stacks up overlapping polls.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "periodic",
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._busy = False
        self._current: Optional[asyncio.Task] = None
        self.skipped_ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, run_immediately: bool = True) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(run_immediately), name=self.name
        )
        logger.info(f"{self.name}: started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        for pending in (task, self._current):
            if pending is None:
                continue
            pending.cancel()
            try:
                await pending
            except asyncio.CancelledError:
                pass
        self._current = None
        logger.info(f"{self.name}: stopped")

    async def tick(self) -> bool:
        """Run the callback once unless a run is in progress."""
        if self._busy:
            self.skipped_ticks += 1
            logger.debug(f"{self.name}: previous tick still running, skipping")
            return False
        self._busy = True
        try:
            await self.callback()
        except Exception:
            logger.exception(f"{self.name}: tick failed")
        finally:
            self._busy = False
        return True

    async def _loop(self, run_immediately: bool) -> None:
        if not run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            if self._busy:
                self.skipped_ticks += 1
                logger.debug(f"{self.name}: previous tick still running, skipping")
            else:
                self._current = asyncio.ensure_future(self.tick())
            await asyncio.sleep(self.interval)
