"""
Jobs module data models.

A job is one unit of paid work run by an external provider: training a
LoRA on a user's photos or generating an image from a prompt.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, HttpUrl


class JobKind(str, Enum):
    """What a job does on the provider."""

    TRAIN = "train"        # Fine-tune a LoRA from a zip of photos
    GENERATE = "generate"  # Generate an image from a prompt


class JobState(str, Enum):
    """Job lifecycle state."""

    CREATED = "created"      # Recorded, nothing charged yet
    DEBITED = "debited"      # Credits taken, not yet accepted by the provider
    SUBMITTED = "submitted"  # Running on the provider
    SUCCEEDED = "succeeded"  # Finished with a result
    FAILED = "failed"        # Finished without a result


class FailureReason(str, Enum):
    """Why a job ended in FAILED."""

    INSUFFICIENT_CREDITS = "insufficient_credits"
    PROVIDER_ERROR = "provider_error"    # Submission failed after retries
    PROVIDER_FAILED = "provider_failed"  # Provider ran the job and reported failure
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class TrainPayload(BaseModel):
    """Input for a TRAIN job."""

    zip_url: HttpUrl = Field(..., description="Uploaded zip of training images")
    trigger_word: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Token the trained LoRA responds to",
    )


class GeneratePayload(BaseModel):
    """Input for a GENERATE job."""

    prompt: str = Field(..., min_length=1, max_length=2000, description="Image prompt")
    lora_url: Optional[HttpUrl] = Field(None, description="Trained LoRA weights to apply")
    lora_scale: float = Field(default=1.0, ge=0.0, le=2.0, description="LoRA strength")


PAYLOAD_MODELS: dict[JobKind, type[BaseModel]] = {
    JobKind.TRAIN: TrainPayload,
    JobKind.GENERATE: GeneratePayload,
}


class Job(BaseModel):
    """
    A job record.

    Records are immutable values; the job store replaces them on every
    transition.
    """

    model_config = {"frozen": True}

    id: str = Field(..., description="Job ID (UUID)")
    user_id: str = Field(..., description="Owner's user ID")
    kind: JobKind = Field(..., description="Job kind")
    payload: dict[str, Any] = Field(default_factory=dict, description="Validated job input")
    state: JobState = Field(default=JobState.CREATED, description="Lifecycle state")
    cost_in_credits: int = Field(..., gt=0, description="Credits charged for this job")
    external_correlation_id: Optional[str] = Field(
        None,
        description="Provider's id for the job, set on submission",
    )
    result_ref: Optional[str] = Field(None, description="Result location on success")
    failure_reason: Optional[FailureReason] = Field(None, description="Why the job failed")
    error_message: Optional[str] = Field(None, description="User-safe failure detail")
    refunded: bool = Field(default=False, description="Whether the debit was refunded")
    refund_settled: bool = Field(
        default=False,
        description="Refund handled: issued, or nothing was charged",
    )
    retry_of: Optional[str] = Field(None, description="Job this one retries")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last transition timestamp",
    )
    submitted_at: Optional[datetime] = Field(None, description="Provider acceptance time")
    completed_at: Optional[datetime] = Field(None, description="Terminal transition time")


class SubmitJobRequest(BaseModel):
    """Request to submit a new job."""

    kind: JobKind = Field(..., description="Job kind")
    payload: dict[str, Any] = Field(..., description="Kind-specific input")
    cost: Optional[int] = Field(
        None,
        gt=0,
        description="Price the client was shown; rejected if it differs from the current price",
    )


class JobResponse(BaseModel):
    """API representation of a job."""

    job_id: str = Field(..., description="Job ID")
    kind: JobKind
    state: JobState
    cost_in_credits: int
    result_ref: Optional[str] = None
    failure_reason: Optional[FailureReason] = None
    error_message: Optional[str] = None
    refunded: bool = False
    retry_of: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(
            job_id=job.id,
            kind=job.kind,
            state=job.state,
            cost_in_credits=job.cost_in_credits,
            result_ref=job.result_ref,
            failure_reason=job.failure_reason,
            error_message=job.error_message,
            refunded=job.refunded,
            retry_of=job.retry_of,
            created_at=job.created_at,
            updated_at=job.updated_at,
            completed_at=job.completed_at,
        )


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    jobs: list[JobResponse] = Field(..., description="Job items")
    total: int = Field(..., description="Total count")
    page: int = Field(..., description="Current page")
    page_size: int = Field(..., description="Items per page")
    has_more: bool = Field(..., description="Whether more pages exist")


class WebhookOutcome(str, Enum):
    """What the ingress did with a completion notification."""

    APPLIED = "applied"          # Job moved to a terminal state
    DUPLICATE = "duplicate"      # Delivery already seen, or job already terminal
    UNKNOWN_JOB = "unknown_job"  # No job with that correlation id
    IGNORED = "ignored"          # Non-terminal status


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the provider."""

    outcome: WebhookOutcome
    job_id: Optional[str] = None
