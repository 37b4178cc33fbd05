"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
Everything runs against the in-memory stores, the mock job provider and the
local payment gateway.
"""

import pytest
from datetime import datetime, timezone, timedelta
import jwt  # PyJWT
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import ServiceContainer, reset_container, set_container
from modules.credits.service import CreditLedger
from modules.jobs.orchestrator import JobOrchestrator
from modules.jobs.poller import JobPoller
from modules.jobs.repository import InMemoryJobStore
from modules.jobs.webhooks import WebhookIngress
from modules.payments.gateway import LocalGateway
from modules.payments.repository import InMemoryPaymentStore
from modules.payments.service import PaymentReconciler
from providers.mock import MockProvider
from shared.config import Settings
from shared.memory import MemoryStore


# Test JWT secret (only for testing)
TEST_JWT_SECRET = "test-secret-key-for-testing-only"
TEST_WEBHOOK_BASE = "https://api.photoforge.test"


def create_test_token(
    user_id: str = "test-user-123",
    email: str = "test@example.com",
    expired: bool = False,
    email_verified: bool = True,
) -> str:
    """
    Create a test JWT token for authentication.

    Args:
        user_id: User ID to include in the token
        email: Email to include in the token
        expired: If True, creates an expired token
        email_verified: Whether the email should be marked as verified

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)

    payload = {
        "sub": user_id,
        "email": email,
        "email_verified": email_verified,
        "role": "authenticated",
        "exp": int(exp.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def make_settings(**overrides) -> Settings:
    """Settings for tests: in-memory everything, no retry sleeps, no sweeper."""
    values = dict(
        storage_backend="memory",
        job_provider="mock",
        payment_gateway="local",
        auth_jwt_secret=TEST_JWT_SECRET,
        webhook_base_url=TEST_WEBHOOK_BASE,
        provider_retry_attempts=2,
        provider_retry_base_seconds=0,
        sweeper_enabled=False,
        generate_job_credits=1,
        train_job_credits=20,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def reset_service_container():
    """Reset the service container before and after each test."""
    reset_container()
    yield
    reset_container()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def ledger(memory_store) -> CreditLedger:
    return CreditLedger(memory_store)


@pytest.fixture
def job_store(memory_store) -> InMemoryJobStore:
    return InMemoryJobStore(memory_store)


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def orchestrator(job_store, ledger, provider, settings) -> JobOrchestrator:
    return JobOrchestrator(job_store, ledger, provider, settings)


@pytest.fixture
def poller(orchestrator, settings) -> JobPoller:
    async def no_sleep(seconds: float) -> None:
        return None

    return JobPoller(orchestrator, settings, sleep=no_sleep)


@pytest.fixture
def ingress(orchestrator) -> WebhookIngress:
    return WebhookIngress(orchestrator)


@pytest.fixture
def gateway() -> LocalGateway:
    return LocalGateway()


@pytest.fixture
def payment_store(memory_store, ledger) -> InMemoryPaymentStore:
    return InMemoryPaymentStore(memory_store, ledger)


@pytest.fixture
def reconciler(payment_store, gateway, settings) -> PaymentReconciler:
    return PaymentReconciler(payment_store, gateway, settings)


@pytest.fixture
def container(settings) -> ServiceContainer:
    """A test container installed as the app's container."""
    test_container = ServiceContainer(settings)
    set_container(test_container)
    return test_container


@pytest.fixture
def test_user_id() -> str:
    """Provide a consistent test user ID."""
    return "test-user-123"


@pytest.fixture
def test_user_email() -> str:
    """Provide a consistent test user email."""
    return "test@example.com"


@pytest.fixture
def auth_token(test_user_id: str, test_user_email: str) -> str:
    """Create a valid auth token for testing."""
    return create_test_token(user_id=test_user_id, email=test_user_email)


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers with a valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def client(container) -> TestClient:
    """Test client for an app wired to the test container.

    Not used as a context manager, so the lifespan (and the sweeper) never
    starts.
    """
    return TestClient(create_app())
