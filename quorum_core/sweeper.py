"""
Periodic expiry sweep.

Runs ``ScheduleRegistry.sweep_expired`` on a fixed interval from an
asyncio task.  The sweep takes per-entry locks, so it is pushed to the
default executor instead of blocking the event loop.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from quorum_core.registry import ScheduleRegistry

logger = logging.getLogger("quorum_sweeper")


class ExpirySweeper:
    """Background task that expires overdue schedules."""

    def __init__(self, registry: ScheduleRegistry, interval: float = 5.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.registry = registry
        self.interval = interval
        self.sweeps = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> list[str]:
        loop = asyncio.get_running_loop()
        expired = await loop.run_in_executor(None, self.registry.sweep_expired)
        self.sweeps += 1
        return expired

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Expiry sweep failed")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Expiry sweeper started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Expiry sweeper stopped")
