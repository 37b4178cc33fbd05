"""
Completion polling and job housekeeping.

Polling covers providers that never call back and webhooks that got
lost. ``poll_job`` follows one job until it finishes; ``sweep`` is the
periodic pass the API runs in the background.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from providers.base import ExternalProviderError
from shared.config import Settings, get_settings

from .exceptions import JobNotFoundError
from .models import FailureReason, Job, JobState
from .orchestrator import JobOrchestrator
from .state_machine import IN_FLIGHT_STATES, is_terminal

logger = logging.getLogger(__name__)


class SweepReport(BaseModel):
    """Counts from one sweep pass."""

    polled: int = 0
    completed: int = 0
    failed_fetches: int = 0
    timed_out: int = 0
    refunds_reconciled: int = 0


class JobPoller:
    """Polls the provider for job completion and fails overdue jobs."""

    def __init__(
        self,
        orchestrator: JobOrchestrator,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._orchestrator = orchestrator
        self._store = orchestrator.store
        self._settings = settings or get_settings()
        self._sleep = sleep

    def _deadline_passed(self, job: Job, now: datetime) -> bool:
        started = job.submitted_at or job.created_at
        return now - started >= timedelta(seconds=self._settings.job_timeout_seconds)

    async def _poll_once(self, job: Job) -> Optional[Job]:
        """
        Fetch one job's status and apply it if terminal.

        A fetch that still fails after retries ends the job with
        PROVIDER_ERROR and a refund. Returns the job if this call moved it.
        """
        try:
            status = await self._orchestrator.fetch_provider_status(job.external_correlation_id)
        except ExternalProviderError as e:
            logger.error(f"Status fetch failed for job {job.id}: {e.message}")
            return await self._orchestrator.fail_job(
                job.id, FailureReason.PROVIDER_ERROR, [JobState.SUBMITTED]
            )
        return await self._orchestrator.apply_status(job, status)

    async def _time_out(self, job: Job) -> Optional[Job]:
        failed = await self._orchestrator.fail_job(job.id, FailureReason.TIMEOUT, [job.state])
        if failed is not None and failed.external_correlation_id:
            await self._orchestrator.cancel_on_provider(failed.external_correlation_id)
        return failed

    async def poll_job(self, job_id: str) -> Job:
        """
        Poll a job until it is terminal.

        Waits ``poll_interval_seconds`` between polls, growing by
        ``poll_backoff_factor`` up to ``poll_max_interval_seconds``. Once
        ``job_timeout_seconds`` have passed since submission the job is
        failed with TIMEOUT and refunded.

        Raises:
            JobNotFoundError: If the job doesn't exist
        """
        interval = self._settings.poll_interval_seconds

        while True:
            job = self._store.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if is_terminal(job.state):
                return job

            if self._deadline_passed(job, datetime.now(timezone.utc)):
                logger.warning(f"Job {job_id} timed out while polling")
                await self._time_out(job)
                continue

            if job.state == JobState.SUBMITTED and job.external_correlation_id:
                if await self._poll_once(job) is not None:
                    continue

            await self._sleep(interval)
            interval = min(
                interval * self._settings.poll_backoff_factor,
                self._settings.poll_max_interval_seconds,
            )

    async def sweep(self) -> SweepReport:
        """
        Run one housekeeping pass.

        1. Poll SUBMITTED jobs that have waited longer than the webhook
           grace period.
        2. Fail and refund in-flight jobs past the deadline.
        3. Issue refunds that a crash left unrecorded.
        """
        report = SweepReport()
        now = datetime.now(timezone.utc)

        grace_cutoff = now - timedelta(seconds=self._settings.webhook_grace_seconds)
        for job in self._store.find_stale([JobState.SUBMITTED], grace_cutoff):
            if not job.external_correlation_id:
                continue
            report.polled += 1
            moved = await self._poll_once(job)
            if moved is None:
                continue
            if moved.failure_reason == FailureReason.PROVIDER_ERROR:
                report.failed_fetches += 1
            else:
                report.completed += 1

        deadline_cutoff = now - timedelta(seconds=self._settings.job_timeout_seconds)
        for job in self._store.find_stale(IN_FLIGHT_STATES, deadline_cutoff):
            if await self._time_out(job) is not None:
                report.timed_out += 1

        report.refunds_reconciled = await self._orchestrator.reconcile_refunds()

        if report.polled or report.timed_out or report.refunds_reconciled:
            logger.info(f"Sweep finished: {report.model_dump()}")
        return report
