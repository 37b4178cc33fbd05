"""Factory function for creating the configured job provider."""

from typing import Optional

from shared.config import Settings, get_settings

from .base import JobProvider
from .mock import MockProvider
from .replicate import ReplicateProvider


def get_job_provider(settings: Optional[Settings] = None) -> JobProvider:
    """Create the job provider selected by ``JOB_PROVIDER``.

    Args:
        settings: Settings to read; defaults to the cached application settings

    Returns:
        A ReplicateProvider or MockProvider

    Raises:
        ValueError: If the Replicate provider is selected without an API token
    """
    settings = settings or get_settings()
    if settings.job_provider == "replicate":
        return ReplicateProvider(
            api_token=settings.replicate_api_token,
            train_version=settings.replicate_train_version,
            generate_version=settings.replicate_generate_version,
            api_base=settings.replicate_api_url,
            timeout=settings.provider_request_timeout_seconds,
        )
    return MockProvider()
