"""PeriodicTask: a fixed-cadence timer that runs one coroutine at a time.

Runs are strictly serialized: the next run is scheduled only after the
previous one returns.  stop() is the only cancellation point and never
interrupts a run in flight; it waits for it to finish instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Call *callback* every *interval* seconds until stopped.

    Args:
        callback: Zero-argument coroutine function to run on each tick.
        interval: Seconds to wait between the end of one run and the next.
        name: Label used in logs and for the asyncio task.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval: float,
        name: str = "periodic-task",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._callback = callback
        self._interval = interval
        self._name = name
        self._task: asyncio.Task | None = None
        self._stopping: asyncio.Event | None = None
        self._runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def runs(self) -> int:
        return self._runs

    async def run_once(self) -> None:
        """Run the callback a single time, logging instead of raising."""
        try:
            await self._callback()
        except Exception:
            logger.exception("%s: run failed", self._name)
        finally:
            self._runs += 1

    async def start(self, run_immediately: bool = True) -> None:
        """Start the timer.

        With *run_immediately* the first run completes before start()
        returns, so callers observe primed state right away.
        """
        if self.running:
            return
        self._stopping = asyncio.Event()
        if run_immediately:
            await self.run_once()
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.info("%s: started (every %.2fs)", self._name, self._interval)

    async def stop(self) -> None:
        """Stop the timer, letting any run in flight complete."""
        if self._task is None or self._stopping is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("%s: stopped after %d run(s)", self._name, self._runs)

    async def _loop(self) -> None:
        assert self._stopping is not None
        while True:
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
                return
            except asyncio.TimeoutError:
                pass
            await self.run_once()
