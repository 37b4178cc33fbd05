"""Job execution provider implementations."""

from .base import (
    ExternalProviderError,
    JobProvider,
    ProviderJobStatus,
    ProviderStatus,
    TERMINAL_PROVIDER_STATUSES,
)
from .factory import get_job_provider
from .mock import MockProvider
from .replicate import ReplicateProvider

__all__ = [
    "ExternalProviderError",
    "JobProvider",
    "ProviderJobStatus",
    "ProviderStatus",
    "TERMINAL_PROVIDER_STATUSES",
    "get_job_provider",
    "MockProvider",
    "ReplicateProvider",
]
