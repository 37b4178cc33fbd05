"""Tests for the provider webhook endpoint."""

import base64
import json
import time

import pytest

from api.dependencies import ServiceContainer, set_container
from modules.credits.models import LedgerReason
from modules.jobs.webhooks import WebhookVerifier

from tests.conftest import make_settings

SECRET = "whsec_" + base64.b64encode(b"api-webhook-key").decode()


def completion(correlation_id: str, status: str = "succeeded") -> bytes:
    return json.dumps({
        "id": correlation_id,
        "status": status,
        "output": "https://out/result.png",
    }).encode()


def submit(client, container, headers, user_id: str = "test-user-123"):
    """Fund the user, submit a job over HTTP and return (job_id, correlation_id)."""
    container.ledger.apply_entry(user_id, 10, LedgerReason.PAYMENT_CREDIT, f"seed-{user_id}")
    job_id = client.post(
        "/api/jobs",
        json={"kind": "generate", "payload": {"prompt": "dunes"}},
        headers=headers,
    ).json()["job_id"]
    return job_id, container.job_store.get(job_id).external_correlation_id


class TestProviderWebhook:
    def test_completion_applied_once(self, client, container, auth_headers):
        job_id, correlation_id = submit(client, container, auth_headers)
        body = completion(correlation_id)
        headers = {"webhook-id": "evt-1"}

        first = client.post("/api/webhooks/provider", content=body, headers=headers)
        second = client.post("/api/webhooks/provider", content=body, headers=headers)

        assert first.status_code == 200
        assert first.json() == {"outcome": "applied", "job_id": job_id}
        assert second.json()["outcome"] == "duplicate"

        fetched = client.get(f"/api/jobs/{job_id}", headers=auth_headers).json()
        assert fetched["state"] == "succeeded"
        assert fetched["result_ref"] == "https://out/result.png"

    def test_unknown_job_acknowledged(self, client):
        response = client.post("/api/webhooks/provider", content=completion("mock-unknown"))
        assert response.status_code == 200
        assert response.json()["outcome"] == "unknown_job"

    def test_malformed_body_acknowledged(self, client):
        response = client.post("/api/webhooks/provider", content=b'{"no": "fields"}')
        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    def test_failure_refunds(self, client, container, auth_headers):
        job_id, correlation_id = submit(client, container, auth_headers)

        client.post("/api/webhooks/provider", content=completion(correlation_id, status="failed"))

        fetched = client.get(f"/api/jobs/{job_id}", headers=auth_headers).json()
        assert fetched["state"] == "failed"
        assert fetched["refunded"] is True
        assert client.get("/api/credits/balance", headers=auth_headers).json()["credits"] == 10


class TestSignedWebhook:
    @pytest.fixture
    def signed_container(self, container):
        signed = ServiceContainer(make_settings(provider_webhook_secret=SECRET))
        set_container(signed)
        return signed

    def test_valid_signature(self, client, signed_container, auth_headers):
        _, correlation_id = submit(client, signed_container, auth_headers)
        body = completion(correlation_id)
        timestamp = int(time.time())
        headers = {
            "webhook-id": "evt-9",
            "webhook-timestamp": str(timestamp),
            "webhook-signature": WebhookVerifier(SECRET).sign("evt-9", timestamp, body),
        }

        response = client.post("/api/webhooks/provider", content=body, headers=headers)
        assert response.status_code == 200
        assert response.json()["outcome"] == "applied"

    def test_unsigned_rejected(self, client, signed_container, auth_headers):
        job_id, correlation_id = submit(client, signed_container, auth_headers)

        response = client.post("/api/webhooks/provider", content=completion(correlation_id))

        assert response.status_code == 401
        assert signed_container.job_store.get(job_id).state.value == "submitted"

    def test_latin1_signature_rejected(self, client, signed_container, auth_headers):
        job_id, correlation_id = submit(client, signed_container, auth_headers)
        headers = {
            "webhook-id": "evt-9",
            "webhook-timestamp": str(int(time.time())),
            "webhook-signature": "v1,\xe9\xe9\xe9".encode("latin-1"),
        }

        response = client.post(
            "/api/webhooks/provider", content=completion(correlation_id), headers=headers
        )

        assert response.status_code == 401
        assert signed_container.job_store.get(job_id).state.value == "submitted"
