"""
Tick Scheduler

Background asyncio loop that drives resurfacing and focus timers at a
fixed cadence.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional

from founderflow.utils.logging import get_logger

logger = get_logger(__name__)


class TickScheduler:
    """
    Periodic tick runner.

    Ticks are serialized: a manual tick_now() waits for a loop tick in
    progress and vice versa.
    """

    def __init__(
        self,
        on_tick: Callable[[], Any],
        interval: float = 1.0,
    ):
        """
        Args:
            on_tick: Called once per tick; may be sync or async
            interval: Seconds between ticks
        """
        self.on_tick = on_tick
        self.interval = interval

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self.tick_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background tick task."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Tick scheduler started (interval: {self.interval}s)")

    async def stop(self) -> None:
        """Stop ticking; an in-flight tick is cancelled."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Tick scheduler stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.tick_now()
            except Exception as e:
                logger.error(f"Error during tick: {e}")

            await asyncio.sleep(self.interval)

    async def tick_now(self) -> Any:
        """Run one tick immediately."""
        async with self._lock:
            result = self.on_tick()
            if inspect.isawaitable(result):
                result = await result
            self.tick_count += 1
            return result
