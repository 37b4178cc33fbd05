"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its service through an interface,
and this file creates the concrete implementations.

``STORAGE_BACKEND`` picks the stores: ``memory`` keeps everything in one
process-local MemoryStore, ``supabase`` uses the Postgres tables and
functions from ``migrations/``.
"""

from typing import TYPE_CHECKING, Optional

from shared.config import Settings, get_settings

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.auth.interfaces import IAuthService
    from modules.credits.interfaces import ICreditLedger
    from modules.jobs.interfaces import IJobStore
    from modules.jobs.orchestrator import JobOrchestrator
    from modules.jobs.poller import JobPoller
    from modules.jobs.webhooks import WebhookIngress
    from modules.payments.interfaces import IPaymentGateway, IPaymentStore
    from modules.payments.service import PaymentReconciler
    from providers.base import JobProvider
    from shared.memory import MemoryStore


class ServiceContainer:
    """
    Container for all service instances.

    This class manages the lifecycle of service instances and their
    dependencies. Services are created lazily on first access.

    All services are cached as singletons within the container.
    Use reset() to clear all cached services for testing.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings
        self.reset()

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def uses_supabase(self) -> bool:
        return self.settings.storage_backend == "supabase"

    @property
    def memory_store(self) -> "MemoryStore":
        """Get the shared in-process store."""
        if self._memory_store is None:
            from shared.memory import MemoryStore
            self._memory_store = MemoryStore()
        return self._memory_store

    @property
    def auth(self) -> "IAuthService":
        """Get the auth service instance."""
        if self._auth_service is None:
            from modules.auth.service import AuthService
            self._auth_service = AuthService(self.settings)
        return self._auth_service

    @property
    def ledger(self) -> "ICreditLedger":
        """Get the credit ledger instance."""
        if self._ledger is None:
            if self.uses_supabase:
                from modules.credits.service import SupabaseCreditLedger
                from shared.database import get_supabase_client
                self._ledger = SupabaseCreditLedger(get_supabase_client(self.settings))
            else:
                from modules.credits.service import CreditLedger
                self._ledger = CreditLedger(self.memory_store)
        return self._ledger

    @property
    def job_store(self) -> "IJobStore":
        """Get the job store instance."""
        if self._job_store is None:
            if self.uses_supabase:
                from modules.jobs.repository import SupabaseJobStore
                from shared.database import get_supabase_client
                self._job_store = SupabaseJobStore(get_supabase_client(self.settings))
            else:
                from modules.jobs.repository import InMemoryJobStore
                self._job_store = InMemoryJobStore(self.memory_store)
        return self._job_store

    @property
    def provider(self) -> "JobProvider":
        """Get the job provider instance."""
        if self._provider is None:
            from providers.factory import get_job_provider
            self._provider = get_job_provider(self.settings)
        return self._provider

    @property
    def orchestrator(self) -> "JobOrchestrator":
        """Get the job orchestrator instance."""
        if self._orchestrator is None:
            from modules.jobs.orchestrator import JobOrchestrator
            self._orchestrator = JobOrchestrator(
                store=self.job_store,
                ledger=self.ledger,
                provider=self.provider,
                settings=self.settings,
            )
        return self._orchestrator

    @property
    def poller(self) -> "JobPoller":
        """Get the job poller instance."""
        if self._poller is None:
            from modules.jobs.poller import JobPoller
            self._poller = JobPoller(self.orchestrator, self.settings)
        return self._poller

    @property
    def webhook_ingress(self) -> "WebhookIngress":
        """Get the provider webhook ingress."""
        if self._webhook_ingress is None:
            from modules.jobs.webhooks import WebhookIngress, WebhookVerifier
            secret = self.settings.provider_webhook_secret
            verifier = WebhookVerifier(secret) if secret else None
            self._webhook_ingress = WebhookIngress(self.orchestrator, verifier)
        return self._webhook_ingress

    @property
    def payment_store(self) -> "IPaymentStore":
        """Get the payment store instance."""
        if self._payment_store is None:
            if self.uses_supabase:
                from modules.payments.repository import SupabasePaymentStore
                from shared.database import get_supabase_client
                self._payment_store = SupabasePaymentStore(get_supabase_client(self.settings))
            else:
                from modules.payments.repository import InMemoryPaymentStore
                self._payment_store = InMemoryPaymentStore(self.memory_store, self.ledger)
        return self._payment_store

    @property
    def gateway(self) -> "IPaymentGateway":
        """Get the payment gateway instance."""
        if self._gateway is None:
            from modules.payments.gateway import get_payment_gateway
            self._gateway = get_payment_gateway(self.settings)
        return self._gateway

    @property
    def reconciler(self) -> "PaymentReconciler":
        """Get the payment reconciler instance."""
        if self._reconciler is None:
            from modules.payments.service import PaymentReconciler
            self._reconciler = PaymentReconciler(
                store=self.payment_store,
                gateway=self.gateway,
                settings=self.settings,
            )
        return self._reconciler

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies.
        """
        self._memory_store: "MemoryStore | None" = None
        self._auth_service: "IAuthService | None" = None
        self._ledger: "ICreditLedger | None" = None
        self._job_store: "IJobStore | None" = None
        self._provider: "JobProvider | None" = None
        self._orchestrator: "JobOrchestrator | None" = None
        self._poller: "JobPoller | None" = None
        self._webhook_ingress: "WebhookIngress | None" = None
        self._payment_store: "IPaymentStore | None" = None
        self._gateway: "IPaymentGateway | None" = None
        self._reconciler: "PaymentReconciler | None" = None


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def set_container(container: ServiceContainer) -> None:
    """Install a specific container, e.g. one built with test settings."""
    global _container
    _container = container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_auth_service() -> "IAuthService":
    """FastAPI dependency for auth service."""
    return get_container().auth


def get_credit_ledger() -> "ICreditLedger":
    """FastAPI dependency for the credit ledger."""
    return get_container().ledger


def get_job_orchestrator() -> "JobOrchestrator":
    """FastAPI dependency for the job orchestrator."""
    return get_container().orchestrator


def get_webhook_ingress() -> "WebhookIngress":
    """FastAPI dependency for provider webhook ingress."""
    return get_container().webhook_ingress


def get_payment_reconciler() -> "PaymentReconciler":
    """FastAPI dependency for the payment reconciler."""
    return get_container().reconciler
