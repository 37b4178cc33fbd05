"""
Provider completion webhooks.

Deliveries are signed with the Standard Webhooks scheme (used by
Replicate): ``webhook-signature`` carries one or more ``v1,<base64>``
HMAC-SHA256 signatures of ``"{webhook-id}.{webhook-timestamp}.{body}"``.
Providers retry until they get a 2xx, so everything short of a bad
signature is acknowledged, including deliveries we drop.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Mapping, Optional

from providers.base import ProviderStatus
from shared.logging_config import security_logger

from .exceptions import InvalidTransitionError, WebhookSignatureError
from .models import WebhookOutcome, WebhookResponse
from .orchestrator import JobOrchestrator
from .state_machine import is_terminal

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300
SECRET_PREFIX = "whsec_"


class WebhookVerifier:
    """Verifies Standard Webhooks signatures."""

    def __init__(self, secret: str, tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS):
        if not secret:
            raise ValueError("Webhook secret must not be empty")
        self._key = self._decode_secret(secret)
        self._tolerance = tolerance_seconds

    @staticmethod
    def _decode_secret(secret: str) -> bytes:
        if secret.startswith(SECRET_PREFIX):
            try:
                return base64.b64decode(secret[len(SECRET_PREFIX):])
            except (binascii.Error, ValueError):
                raise ValueError("Webhook secret is not valid base64")
        return secret.encode()

    def sign(self, webhook_id: str, timestamp: int, body: bytes) -> str:
        """Compute the ``v1,...`` signature for a delivery."""
        signed = f"{webhook_id}.{timestamp}.".encode() + body
        digest = hmac.new(self._key, signed, hashlib.sha256).digest()
        return f"v1,{base64.b64encode(digest).decode()}"

    def verify(
        self,
        headers: Mapping[str, str],
        body: bytes,
        now: Optional[float] = None,
    ) -> None:
        """
        Check a delivery's signature and freshness.

        Raises:
            WebhookSignatureError: On missing headers, a stale timestamp or
                no matching signature
        """
        lowered = {k.lower(): v for k, v in headers.items()}
        webhook_id = lowered.get("webhook-id")
        raw_timestamp = lowered.get("webhook-timestamp")
        raw_signatures = lowered.get("webhook-signature")
        if not webhook_id or not raw_timestamp or not raw_signatures:
            raise WebhookSignatureError("missing signature headers")

        try:
            timestamp = int(raw_timestamp)
        except ValueError:
            raise WebhookSignatureError("malformed timestamp")

        current = time.time() if now is None else now
        if abs(current - timestamp) > self._tolerance:
            raise WebhookSignatureError("timestamp outside tolerance")

        # compare_digest rejects non-ASCII str, so compare bytes
        expected = self.sign(webhook_id, timestamp, body).encode()
        for candidate in raw_signatures.split():
            if hmac.compare_digest(candidate.encode("utf-8", "surrogateescape"), expected):
                return
        raise WebhookSignatureError("no matching signature")


class WebhookIngress:
    """
    Turns provider notifications into job transitions.

    A delivery is keyed by ``{correlation_id}:{event_id}``. Keys are
    recorded after the transition is applied, so a delivery that failed
    half way is retried by the provider; the job's compare-and-set keeps
    the retry from applying twice.
    """

    def __init__(
        self,
        orchestrator: JobOrchestrator,
        verifier: Optional[WebhookVerifier] = None,
    ):
        self._orchestrator = orchestrator
        self._store = orchestrator.store
        self._provider = orchestrator.provider
        self._verifier = verifier

    async def handle(self, body: bytes, headers: Mapping[str, str]) -> WebhookResponse:
        """
        Handle a raw delivery.

        Raises:
            WebhookSignatureError: If a secret is configured and the
                signature does not verify
        """
        if self._verifier is not None:
            try:
                self._verifier.verify(headers, body)
            except WebhookSignatureError as e:
                security_logger.warning(f"Rejected provider webhook: {e.details['reason']}")
                raise

        event_id = {k.lower(): v for k, v in headers.items()}.get("webhook-id")
        try:
            status = self._provider.parse_webhook(json.loads(body), event_id=event_id)
        except ValueError as e:
            logger.warning(f"Ignoring unparseable provider webhook: {e}")
            return WebhookResponse(outcome=WebhookOutcome.IGNORED)

        return await self.process(status)

    async def process(self, status: ProviderStatus) -> WebhookResponse:
        """Apply a parsed notification."""
        job = self._store.get_by_correlation_id(status.correlation_id)
        if job is None:
            logger.warning(f"Webhook for unknown correlation id {status.correlation_id}")
            return WebhookResponse(outcome=WebhookOutcome.UNKNOWN_JOB)

        if not status.is_terminal:
            return WebhookResponse(outcome=WebhookOutcome.IGNORED, job_id=job.id)

        event_key = f"{status.correlation_id}:{status.event_id or status.status.value}"
        if is_terminal(job.state) or not self._is_new_event(event_key):
            logger.info(f"Duplicate webhook for job {job.id} ({event_key})")
            return WebhookResponse(outcome=WebhookOutcome.DUPLICATE, job_id=job.id)

        try:
            updated = await self._orchestrator.apply_status(job, status)
        except InvalidTransitionError as e:
            logger.error(f"Webhook dropped for job {job.id}: {e.message}")
            return WebhookResponse(outcome=WebhookOutcome.DUPLICATE, job_id=job.id)

        self._store.record_event(event_key)
        if updated is None:
            return WebhookResponse(outcome=WebhookOutcome.DUPLICATE, job_id=job.id)

        logger.info(f"Webhook applied to job {job.id}: {updated.state.value}")
        return WebhookResponse(outcome=WebhookOutcome.APPLIED, job_id=job.id)

    def _is_new_event(self, event_key: str) -> bool:
        return not self._store.has_event(event_key)
