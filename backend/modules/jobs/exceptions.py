"""
Jobs module exceptions.
"""

from typing import Any, Optional

from shared.exceptions import (
    PhotoforgeError,
    NotFoundError,
    ValidationError,
    AuthorizationError,
    ConflictError,
)


class JobError(PhotoforgeError):
    """Base exception for job-related errors."""

    pass


class JobNotFoundError(NotFoundError):
    """Raised when a job is not found."""

    def __init__(self, job_id: str):
        super().__init__(
            f"Job not found: {job_id}",
            code="JOB_NOT_FOUND",
            details={"job_id": job_id},
        )


class JobAccessDeniedError(AuthorizationError):
    """Raised when user doesn't own a job."""

    def __init__(self, job_id: str, user_id: str):
        super().__init__(
            f"Access denied to job: {job_id}",
            code="JOB_ACCESS_DENIED",
            details={"job_id": job_id, "user_id": user_id},
        )


class InvalidJobPayloadError(ValidationError):
    """Raised when a job request fails validation."""

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(
            message,
            code="INVALID_JOB_PAYLOAD",
            details={"errors": errors or []},
        )


class InvalidTransitionError(JobError):
    """
    Raised when a state change is not an edge of the job state machine.

    Signals a programming error, or a late signal for a job that is
    already terminal.
    """

    def __init__(self, job_id: str, from_state: str, to_state: str):
        super().__init__(
            f"Invalid transition for job {job_id}: {from_state} -> {to_state}",
            code="INVALID_TRANSITION",
            details={"job_id": job_id, "from_state": from_state, "to_state": to_state},
        )


class JobNotCancellableError(ConflictError):
    """Raised when cancelling a job that is already finished."""

    def __init__(self, job_id: str, state: str):
        super().__init__(
            f"Job {job_id} cannot be cancelled in state {state}",
            code="JOB_NOT_CANCELLABLE",
            details={"job_id": job_id, "state": state},
        )


class JobNotRetryableError(ConflictError):
    """Raised when retrying a job that has not failed."""

    def __init__(self, job_id: str, state: str):
        super().__init__(
            f"Job {job_id} cannot be retried in state {state}",
            code="JOB_NOT_RETRYABLE",
            details={"job_id": job_id, "state": state},
        )


class WebhookSignatureError(JobError):
    """Raised when a provider webhook fails signature verification."""

    def __init__(self, reason: str):
        super().__init__(
            f"Webhook signature rejected: {reason}",
            code="INVALID_WEBHOOK_SIGNATURE",
            details={"reason": reason},
        )
