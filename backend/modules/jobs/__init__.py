"""
Jobs module.

Charges for, submits and tracks provider jobs (LoRA training and image
generation) until they finish, refunding credits when they fail.

Public API:
- JobOrchestrator: Submit, complete, fail, cancel and retry jobs
- IJobStore: Interface for job persistence
- WebhookIngress: Applies provider completion webhooks
- JobPoller: Polls for completion and times out stuck jobs
- Job: Job record
"""

from .interfaces import IJobStore, IJobOrchestrator
from .models import (
    JobKind,
    JobState,
    FailureReason,
    Job,
    TrainPayload,
    GeneratePayload,
    SubmitJobRequest,
    JobResponse,
    JobListResponse,
    WebhookOutcome,
    WebhookResponse,
)
from .exceptions import (
    JobError,
    JobNotFoundError,
    JobAccessDeniedError,
    InvalidJobPayloadError,
    InvalidTransitionError,
    JobNotCancellableError,
    JobNotRetryableError,
    WebhookSignatureError,
)
from .state_machine import TRANSITIONS, TERMINAL_STATES, is_terminal, can_transition
from .repository import InMemoryJobStore, SupabaseJobStore
from .orchestrator import JobOrchestrator
from .webhooks import WebhookIngress, WebhookVerifier
from .poller import JobPoller, SweepReport

__all__ = [
    # Interfaces
    "IJobStore",
    "IJobOrchestrator",
    # Models
    "JobKind",
    "JobState",
    "FailureReason",
    "Job",
    "TrainPayload",
    "GeneratePayload",
    "SubmitJobRequest",
    "JobResponse",
    "JobListResponse",
    "WebhookOutcome",
    "WebhookResponse",
    # Exceptions
    "JobError",
    "JobNotFoundError",
    "JobAccessDeniedError",
    "InvalidJobPayloadError",
    "InvalidTransitionError",
    "JobNotCancellableError",
    "JobNotRetryableError",
    "WebhookSignatureError",
    # State machine
    "TRANSITIONS",
    "TERMINAL_STATES",
    "is_terminal",
    "can_transition",
    # Stores
    "InMemoryJobStore",
    "SupabaseJobStore",
    # Services
    "JobOrchestrator",
    "WebhookIngress",
    "WebhookVerifier",
    "JobPoller",
    "SweepReport",
]
