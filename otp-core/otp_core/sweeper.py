"""
Expiry Sweeper
==============
Background task that periodically deletes expired verification records.
"""

import asyncio
from typing import Optional
import structlog

from otp_core.lifecycle import OTPLifecycle

logger = structlog.get_logger(__name__)


class ExpirySweeper:
    """
    Runs OTPLifecycle.run_expiry_sweep on a fixed interval.

    Each run deletes at most one batch. A failing run is logged and the
    next one is attempted on schedule.
    """

    def __init__(self, lifecycle: OTPLifecycle, interval: Optional[float] = None):
        self.lifecycle = lifecycle
        self.interval = interval if interval is not None else lifecycle.settings.sweep_interval
        if self.interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run a single sweep. Returns the number of deleted records, 0 on failure."""
        try:
            return await self.lifecycle.run_expiry_sweep()
        except Exception:
            logger.exception("Expiry sweep failed")
            return 0

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info("Expiry sweeper started", interval=self.interval)

    async def stop(self) -> None:
        """Stop the loop and wait for the current sweep to finish."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("Expiry sweeper stopped")
