"""
Background sweeper.

Runs the job poller's housekeeping pass and expires abandoned payment
orders on a fixed interval for as long as the API is up.
"""

import asyncio
import logging
from typing import Optional

from modules.jobs.poller import JobPoller, SweepReport
from modules.payments.service import PaymentReconciler

logger = logging.getLogger(__name__)


class Sweeper:
    """Periodic maintenance loop started from the app lifespan."""

    def __init__(
        self,
        poller: JobPoller,
        reconciler: PaymentReconciler,
        interval_seconds: float,
    ):
        self._poller = poller
        self._reconciler = reconciler
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> tuple[SweepReport, int]:
        """Run one pass. Returns the job sweep report and expired order count."""
        report = await self._poller.sweep()
        expired = await self._reconciler.expire_abandoned()
        return report, expired

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                # Keep sweeping; the next pass retries whatever failed
                logger.exception("Sweep pass failed")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Sweeper started (every {self._interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sweeper stopped")
