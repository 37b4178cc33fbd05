"""
Job module interfaces.

The orchestrator, webhook ingress and poller depend on IJobStore and
never on a concrete store.
"""

from datetime import datetime
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from .models import Job, JobState, SubmitJobRequest


@runtime_checkable
class IJobStore(Protocol):
    """
    Persistence for jobs.

    Every state change is a compare-and-set: ``transition`` only applies
    when the job is still in one of ``expected`` states, and returns None
    when another caller got there first. The store does not enforce
    ownership; the orchestrator does.
    """

    def create(self, job: Job) -> Job:
        """Insert a new job. Re-inserting the same id returns the stored job."""
        ...

    def get(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    def get_by_correlation_id(self, correlation_id: str) -> Optional[Job]:
        """Get a job by the provider's correlation id."""
        ...

    def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        state: Optional[JobState] = None,
    ) -> tuple[list[Job], int]:
        """List a user's jobs, most recent first, with the total count."""
        ...

    def transition(
        self,
        job_id: str,
        expected: Iterable[JobState],
        new_state: JobState,
        **fields: Any,
    ) -> Optional[Job]:
        """
        Move a job to ``new_state`` if it is currently in ``expected``.

        Args:
            job_id: Job to update
            expected: States the caller observed
            new_state: Target state
            **fields: Extra columns to set with the state change

        Returns:
            The updated job, or None if the job was no longer in ``expected``

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidTransitionError: If expected -> new_state is not an edge
        """
        ...

    def mark_refunded(self, job_id: str, refunded: bool = True) -> Optional[Job]:
        """
        Settle a FAILED job's refund.

        ``refunded=False`` records that there was no debit to return, which
        takes the job out of ``find_unrefunded_failures``.
        """
        ...

    def find_stale(self, states: Iterable[JobState], older_than: datetime) -> list[Job]:
        """Jobs in ``states`` whose last transition is before ``older_than``."""
        ...

    def find_unrefunded_failures(self, limit: int = 100) -> list[Job]:
        """FAILED jobs whose refund is not yet settled."""
        ...

    def has_event(self, event_key: str) -> bool:
        """Whether a completion event has been processed."""
        ...

    def record_event(self, event_key: str) -> bool:
        """Record a processed completion event. Returns False if already seen."""
        ...


@runtime_checkable
class IJobOrchestrator(Protocol):
    """Interface for job lifecycle operations exposed to the API."""

    async def submit_job(self, user_id: str, request: SubmitJobRequest) -> Job:
        """Charge for and submit a job. Raises InsufficientCreditsError."""
        ...

    async def get_job(self, job_id: str, user_id: str) -> Job:
        """Get a job owned by the user."""
        ...

    async def list_jobs(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        state: Optional[JobState] = None,
    ) -> tuple[list[Job], int]:
        """List the user's jobs."""
        ...

    async def cancel_job(self, job_id: str, user_id: str) -> Job:
        """Cancel an in-flight job and refund it."""
        ...

    async def retry_job(self, job_id: str, user_id: str) -> Job:
        """Submit a new job with a failed job's kind and payload."""
        ...
