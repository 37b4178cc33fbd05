"""In-process job provider for local development and tests.

Jobs never run anywhere. Each submission gets a ``mock-`` correlation id
and stays pending until a test (or a developer) settles it with
``complete()`` or ``fail()``. Failures can be injected with ``fail_next``.
"""

import logging
import uuid
from typing import Any, Optional

from .base import ExternalProviderError, JobProvider, ProviderJobStatus, ProviderStatus

logger = logging.getLogger(__name__)

MOCK_RESULT_URL = "https://example.invalid/photoforge/mock-output.png"


class MockProvider(JobProvider):
    """Provider that records submissions instead of running them."""

    name = "mock"

    def __init__(self) -> None:
        self.submissions: list[dict[str, Any]] = []
        self.cancelled: list[str] = []
        self._statuses: dict[str, ProviderStatus] = {}
        self._failures: list[ExternalProviderError] = []
        self.fetch_calls = 0

    def fail_next(self, error: Optional[ExternalProviderError] = None, times: int = 1) -> None:
        """Make the next ``times`` provider calls raise ``error``."""
        error = error or ExternalProviderError(
            "Mock provider unavailable", provider=self.name, retryable=True
        )
        self._failures.extend([error] * times)

    def _maybe_fail(self) -> None:
        if self._failures:
            raise self._failures.pop(0)

    async def submit(
        self,
        job_id: str,
        kind: str,
        payload: dict[str, Any],
        webhook_url: Optional[str] = None,
    ) -> str:
        self._maybe_fail()
        correlation_id = f"mock-{uuid.uuid4().hex[:12]}"
        self.submissions.append({
            "job_id": job_id,
            "kind": str(kind),
            "payload": dict(payload),
            "webhook_url": webhook_url,
            "correlation_id": correlation_id,
        })
        self._statuses[correlation_id] = ProviderStatus(
            correlation_id=correlation_id,
            status=ProviderJobStatus.PENDING,
        )
        logger.info(f"Mock provider accepted job {job_id} as {correlation_id}")
        return correlation_id

    async def fetch_status(self, correlation_id: str) -> ProviderStatus:
        self.fetch_calls += 1
        self._maybe_fail()
        status = self._statuses.get(correlation_id)
        if status is None:
            raise ExternalProviderError(
                f"Unknown mock job {correlation_id}",
                provider=self.name,
                status_code=404,
            )
        return status

    async def cancel(self, correlation_id: str) -> None:
        self.cancelled.append(correlation_id)
        if correlation_id in self._statuses:
            self._statuses[correlation_id] = ProviderStatus(
                correlation_id=correlation_id,
                status=ProviderJobStatus.CANCELED,
            )

    def parse_webhook(
        self,
        body: dict[str, Any],
        event_id: Optional[str] = None,
    ) -> ProviderStatus:
        if not isinstance(body, dict) or not body.get("id") or not body.get("status"):
            raise ValueError("Webhook body is missing id or status")
        try:
            status = ProviderJobStatus(body["status"])
        except ValueError:
            raise ValueError(f"Unknown status: {body['status']!r}")
        return ProviderStatus(
            correlation_id=body["id"],
            status=status,
            result_ref=body.get("output"),
            error=body.get("error"),
            event_id=event_id,
        )

    def complete(self, correlation_id: str, result_ref: str = MOCK_RESULT_URL) -> None:
        """Mark a mock job as succeeded."""
        self._statuses[correlation_id] = ProviderStatus(
            correlation_id=correlation_id,
            status=ProviderJobStatus.SUCCEEDED,
            result_ref=result_ref,
        )

    def fail(self, correlation_id: str, error: str = "mock failure") -> None:
        """Mark a mock job as failed."""
        self._statuses[correlation_id] = ProviderStatus(
            correlation_id=correlation_id,
            status=ProviderJobStatus.FAILED,
            error=error,
        )
