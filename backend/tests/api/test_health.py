"""Tests for health check endpoints."""

from api.dependencies import ServiceContainer, set_container

from tests.conftest import make_settings


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client):
        """Health endpoint should return 200 with status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert set(data.keys()) == {"status", "version"}

    def test_readiness_check(self, client):
        """Readiness endpoint should return 200 with component status."""
        response = client.get("/api/ready")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "storage": "ok",
            "provider": "ok",
            "gateway": "ok",
        }

    def test_not_ready_without_provider_credentials(self, client):
        """Selecting Replicate without a token should fail readiness."""
        set_container(ServiceContainer(make_settings(job_provider="replicate")))

        response = client.get("/api/ready")
        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["provider"] == "unavailable"
        assert data["storage"] == "ok"

    def test_not_ready_without_gateway_credentials(self, client):
        set_container(ServiceContainer(make_settings(payment_gateway="razorpay")))

        response = client.get("/api/ready")
        assert response.status_code == 503
        assert response.json()["gateway"] == "unavailable"
