"""Base classes and models for job execution providers."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from shared.exceptions import ExternalServiceError


class ProviderJobStatus(str, Enum):
    """Provider-side status of a submitted job, normalized across providers."""

    PENDING = "pending"      # queued or running
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_PROVIDER_STATUSES = frozenset(
    {ProviderJobStatus.SUCCEEDED, ProviderJobStatus.FAILED, ProviderJobStatus.CANCELED}
)


class ProviderStatus(BaseModel):
    """Status report for one provider job, from a poll or a webhook.

    Attributes:
        correlation_id: Provider's id for the job
        status: Normalized status
        result_ref: Location of the produced artifact on success
        error: Provider error text on failure (never shown to users)
        event_id: Delivery id for webhooks, used for deduplication
    """

    model_config = {"frozen": True}

    correlation_id: str
    status: ProviderJobStatus
    result_ref: Optional[str] = None
    error: Optional[str] = None
    event_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PROVIDER_STATUSES


class ExternalProviderError(ExternalServiceError):
    """A provider call failed.

    ``retryable`` is True for timeouts, connection errors, rate limits and
    5xx responses. Anything else (bad input, auth) will not get better by
    trying again.
    """

    def __init__(
        self,
        message: str,
        provider: str,
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            service=provider,
            code="PROVIDER_ERROR",
            details={"retryable": retryable, "status_code": status_code},
        )
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code


class JobProvider(ABC):
    """Abstract base class for job execution providers.

    A provider accepts a job, runs it out of process and reports the
    outcome either by calling our webhook or when polled. Implementations
    must not touch credits or job state; the orchestrator owns both.
    """

    name: str = "provider"

    @abstractmethod
    async def submit(
        self,
        job_id: str,
        kind: str,
        payload: dict[str, Any],
        webhook_url: Optional[str] = None,
    ) -> str:
        """Start a job on the provider.

        Args:
            job_id: Our job id, for logging and provider metadata
            kind: "train" or "generate"
            payload: Validated job payload
            webhook_url: Where the provider should report completion

        Returns:
            The provider's correlation id for the job

        Raises:
            ExternalProviderError: If the provider rejected or did not answer
        """
        pass

    @abstractmethod
    async def fetch_status(self, correlation_id: str) -> ProviderStatus:
        """Fetch the current status of a job."""
        pass

    @abstractmethod
    async def cancel(self, correlation_id: str) -> None:
        """Ask the provider to stop a job. Best effort."""
        pass

    @abstractmethod
    def parse_webhook(
        self,
        body: dict[str, Any],
        event_id: Optional[str] = None,
    ) -> ProviderStatus:
        """Translate a provider-native webhook body into a ProviderStatus.

        Raises:
            ValueError: If the body is not a recognizable notification
        """
        pass
