"""
Job orchestration.

Ties the credit ledger, the job store and the job provider together:

- submit: record the job, debit its price, then hand it to the provider
- complete: apply the provider's verdict from a webhook or a poll
- fail: move the job to FAILED and refund the debit, if there was one

Credits are taken before the provider sees the job. Any path that ends
in FAILED after a debit owes a refund, keyed by the job id so it can be
issued more than once without paying out twice.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from modules.credits.exceptions import InsufficientCreditsError
from modules.credits.interfaces import ICreditLedger
from modules.credits.models import LedgerReason
from providers.base import ExternalProviderError, JobProvider, ProviderJobStatus, ProviderStatus
from shared.config import Settings, get_settings
from shared.exceptions import PhotoforgeError

from .exceptions import (
    InvalidJobPayloadError,
    JobAccessDeniedError,
    JobNotCancellableError,
    JobNotFoundError,
    JobNotRetryableError,
)
from .interfaces import IJobStore
from .models import (
    PAYLOAD_MODELS,
    FailureReason,
    Job,
    JobKind,
    JobState,
    SubmitJobRequest,
)
from .state_machine import CANCELLABLE_STATES, IN_FLIGHT_STATES

logger = logging.getLogger(__name__)

T = TypeVar("T")

WEBHOOK_PATH = "/api/webhooks/provider"

# User-facing failure messages. Raw provider errors only go to the logs.
FAILURE_MESSAGES = {
    FailureReason.INSUFFICIENT_CREDITS: "Not enough credits to run this job",
    FailureReason.PROVIDER_ERROR: "The job could not be started. Your credits were refunded.",
    FailureReason.PROVIDER_FAILED: "The job failed to complete. Your credits were refunded.",
    FailureReason.TIMEOUT: "The job took too long and was stopped. Your credits were refunded.",
    FailureReason.CANCELLED: "Cancelled by user. Your credits were refunded.",
}


def debit_key(job_id: str) -> str:
    return f"{job_id}:debit"


def refund_key(job_id: str) -> str:
    return f"{job_id}:refund"


def _is_retryable_provider_error(error: BaseException) -> bool:
    return isinstance(error, ExternalProviderError) and error.retryable


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobOrchestrator:
    """
    Runs jobs through their lifecycle.

    Every state change goes through ``IJobStore.transition``. When two
    callers race (a webhook and a poll, a completion and a cancel) the
    first compare-and-set wins and the loser sees None and backs off, so
    a job reaches a terminal state exactly once.
    """

    def __init__(
        self,
        store: IJobStore,
        ledger: ICreditLedger,
        provider: JobProvider,
        settings: Optional[Settings] = None,
    ):
        self._store = store
        self._ledger = ledger
        self._provider = provider
        self._settings = settings or get_settings()

    @property
    def store(self) -> IJobStore:
        return self._store

    @property
    def provider(self) -> JobProvider:
        return self._provider

    # -------------------------------------------------------------------------
    # Pricing and validation
    # -------------------------------------------------------------------------

    def price_for(self, kind: JobKind) -> int:
        """Current price of a job kind in credits."""
        if kind == JobKind.TRAIN:
            return self._settings.train_job_credits
        return self._settings.generate_job_credits

    def webhook_url(self) -> Optional[str]:
        """Completion webhook URL given to the provider, if one is configured."""
        base = self._settings.webhook_base_url
        if not base:
            return None
        return f"{base.rstrip('/')}{WEBHOOK_PATH}"

    def _validate_payload(self, kind: JobKind, payload: dict[str, Any]) -> dict[str, Any]:
        model = PAYLOAD_MODELS[kind]
        try:
            validated = model.model_validate(payload)
        except PydanticValidationError as e:
            raise InvalidJobPayloadError(
                f"Invalid payload for {kind.value} job",
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ],
            )
        return validated.model_dump(mode="json", exclude_none=True)

    # -------------------------------------------------------------------------
    # Provider calls
    # -------------------------------------------------------------------------

    async def _call_provider(self, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Call the provider with bounded exponential backoff on retryable errors."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.provider_retry_attempts + 1),
            wait=wait_exponential(multiplier=self._settings.provider_retry_base_seconds),
            retry=retry_if_exception(_is_retryable_provider_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await func(*args)

    async def fetch_provider_status(self, correlation_id: str) -> ProviderStatus:
        """Poll the provider for a job's status, with retries."""
        return await self._call_provider(self._provider.fetch_status, correlation_id)

    async def cancel_on_provider(self, correlation_id: str) -> None:
        try:
            await self._provider.cancel(correlation_id)
        except ExternalProviderError as e:
            logger.warning(f"Provider cancel failed for {correlation_id}: {e.message}")

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    async def submit_job(
        self,
        user_id: str,
        request: SubmitJobRequest,
        retry_of: Optional[str] = None,
    ) -> Job:
        """
        Create, charge and submit a job.

        Returns the job in SUBMITTED on success, or in FAILED (already
        refunded) if the provider could not start it.

        Raises:
            InvalidJobPayloadError: Bad payload or a stale quoted price
            InsufficientCreditsError: Balance below the price. The job is
                recorded as FAILED and its id is in ``details["job_id"]``.
        """
        payload = self._validate_payload(request.kind, request.payload)
        cost = self.price_for(request.kind)
        if request.cost is not None and request.cost != cost:
            raise InvalidJobPayloadError(
                f"Quoted cost {request.cost} does not match the current price {cost}",
                errors=[{"loc": ["cost"], "msg": "price changed", "type": "value_error"}],
            )

        job = self._store.create(Job(
            id=str(uuid.uuid4()),
            user_id=user_id,
            kind=request.kind,
            payload=payload,
            cost_in_credits=cost,
            retry_of=retry_of,
        ))
        logger.info(f"Job {job.id} created: user={user_id} kind={job.kind.value} cost={cost}")

        try:
            await self._ledger.debit(user_id, cost, debit_key(job.id), reference_id=job.id)
        except InsufficientCreditsError as e:
            self._store.transition(
                job.id,
                [JobState.CREATED],
                JobState.FAILED,
                failure_reason=FailureReason.INSUFFICIENT_CREDITS,
                error_message=FAILURE_MESSAGES[FailureReason.INSUFFICIENT_CREDITS],
                completed_at=_now(),
            )
            e.details["job_id"] = job.id
            raise

        debited = self._store.transition(job.id, [JobState.CREATED], JobState.DEBITED)
        if debited is None:
            # The sweeper failed the job between our debit and this write
            return await self.refund_job(self._require(job.id))
        return await self._dispatch(debited)

    async def _dispatch(self, job: Job) -> Job:
        try:
            correlation_id = await self._call_provider(
                self._provider.submit,
                job.id,
                job.kind.value,
                job.payload,
                self.webhook_url(),
            )
        except ExternalProviderError as e:
            logger.error(f"Job {job.id} submission failed: {e.message}")
            failed = await self.fail_job(job.id, FailureReason.PROVIDER_ERROR, [JobState.DEBITED])
            return failed or self._require(job.id)

        submitted = self._store.transition(
            job.id,
            [JobState.DEBITED],
            JobState.SUBMITTED,
            external_correlation_id=correlation_id,
            submitted_at=_now(),
        )
        if submitted is None:
            # Failed (timeout or cancel) while the submit call was in flight
            logger.warning(f"Job {job.id} left DEBITED before submission landed, cancelling")
            await self.cancel_on_provider(correlation_id)
            return self._require(job.id)

        logger.info(f"Job {job.id} submitted as {correlation_id}")
        return submitted

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _require(self, job_id: str) -> Job:
        job = self._store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def get_job(self, job_id: str, user_id: str) -> Job:
        """
        Get a job owned by the user.

        Raises:
            JobNotFoundError: If the job doesn't exist
            JobAccessDeniedError: If the user doesn't own the job
        """
        job = self._require(job_id)
        if job.user_id != user_id:
            raise JobAccessDeniedError(job_id, user_id)
        return job

    async def list_jobs(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        state: Optional[JobState] = None,
    ) -> tuple[list[Job], int]:
        return self._store.list_for_user(user_id, page, page_size, state)

    # -------------------------------------------------------------------------
    # Completion and failure
    # -------------------------------------------------------------------------

    async def complete_job(
        self,
        job_id: str,
        succeeded: bool,
        result_ref: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Optional[Job]:
        """
        Apply a terminal provider verdict to a SUBMITTED job.

        Returns the updated job, or None if the job had already left
        SUBMITTED (another signal won).
        """
        if succeeded:
            return self._store.transition(
                job_id,
                [JobState.SUBMITTED],
                JobState.SUCCEEDED,
                result_ref=result_ref,
                completed_at=_now(),
            )

        if error:
            logger.warning(f"Job {job_id} failed on provider: {error}")
        return await self.fail_job(job_id, FailureReason.PROVIDER_FAILED, [JobState.SUBMITTED])

    async def apply_status(self, job: Job, status: ProviderStatus) -> Optional[Job]:
        """Apply a polled or pushed provider status. Non-terminal statuses are ignored."""
        if not status.is_terminal:
            return None
        return await self.complete_job(
            job.id,
            succeeded=status.status == ProviderJobStatus.SUCCEEDED,
            result_ref=status.result_ref,
            error=status.error,
        )

    async def fail_job(
        self,
        job_id: str,
        reason: FailureReason,
        expected: Iterable[JobState] = IN_FLIGHT_STATES,
    ) -> Optional[Job]:
        """
        Move a job to FAILED and refund it.

        Returns the failed (and refunded) job, or None if the job was no
        longer in ``expected``. The caller that wins the transition owns
        the refund.
        """
        failed = self._store.transition(
            job_id,
            expected,
            JobState.FAILED,
            failure_reason=reason,
            error_message=FAILURE_MESSAGES[reason],
            completed_at=_now(),
        )
        if failed is None:
            return None
        logger.info(f"Job {job_id} failed: {reason.value}")
        return await self.refund_job(failed)

    async def refund_job(self, job: Job) -> Job:
        """
        Return a FAILED job's debit to the user.

        Safe to call repeatedly. Jobs that were never debited are marked
        settled without a ledger entry.
        """
        if job.state != JobState.FAILED or job.refunded:
            return job

        debit = await self._ledger.get_entry(debit_key(job.id))
        if debit is None:
            logger.debug(f"Job {job.id} has no debit to refund")
            return self._store.mark_refunded(job.id, refunded=False) or job

        await self._ledger.credit(
            job.user_id,
            -debit.delta,
            refund_key(job.id),
            reason=LedgerReason.JOB_REFUND,
            reference_id=job.id,
        )
        logger.info(f"Job {job.id} refunded {-debit.delta} credits")
        return self._store.mark_refunded(job.id) or job

    async def reconcile_refunds(self, limit: int = 100) -> int:
        """
        Issue refunds that were owed but never recorded.

        Covers a crash between a job's FAILED transition and its refund.
        Returns the number of jobs refunded.
        """
        refunded = 0
        for job in self._store.find_unrefunded_failures(limit):
            try:
                updated = await self.refund_job(job)
            except PhotoforgeError as e:
                logger.error(f"Refund reconciliation failed for job {job.id}: {e.message}")
                continue
            if updated.refunded:
                refunded += 1
        if refunded:
            logger.info(f"Reconciled {refunded} missing refunds")
        return refunded

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    async def cancel_job(self, job_id: str, user_id: str) -> Job:
        """
        Cancel an in-flight job and refund it.

        Raises:
            JobNotFoundError / JobAccessDeniedError: As get_job
            JobNotCancellableError: If the job already finished
        """
        job = await self.get_job(job_id, user_id)
        if job.state not in CANCELLABLE_STATES:
            raise JobNotCancellableError(job_id, job.state.value)

        cancelled = await self.fail_job(job_id, FailureReason.CANCELLED, CANCELLABLE_STATES)
        if cancelled is None:
            current = self._require(job_id)
            raise JobNotCancellableError(job_id, current.state.value)

        if cancelled.external_correlation_id:
            await self.cancel_on_provider(cancelled.external_correlation_id)
        return cancelled

    async def retry_job(self, job_id: str, user_id: str) -> Job:
        """
        Submit a new job with a failed job's kind and payload.

        The failed job is left as it is; the new job links back to it
        through ``retry_of`` and is charged at the current price.
        """
        job = await self.get_job(job_id, user_id)
        if job.state != JobState.FAILED:
            raise JobNotRetryableError(job_id, job.state.value)
        return await self.submit_job(
            user_id,
            SubmitJobRequest(kind=job.kind, payload=job.payload),
            retry_of=job.id,
        )
