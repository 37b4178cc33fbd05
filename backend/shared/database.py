"""
Supabase client for the ``supabase`` storage backend.

The ledger, job and payment stores share one service-role client. Row
level security is bypassed, so every store filters by owner itself, and
all money-moving writes go through the Postgres functions defined in
``migrations/``.
"""

from typing import Optional

from supabase import Client, ClientOptions, create_client

from .config import Settings, get_settings

_client: Optional[Client] = None


def get_supabase_client(settings: Optional[Settings] = None) -> Client:
    """
    Return the shared service-role client, creating it on first use.

    PostgREST calls time out after ``supabase_timeout_seconds``; the stores
    treat the resulting transport error as transient and retry.

    Raises:
        RuntimeError: If SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is unset
    """
    global _client

    if _client is not None:
        return _client

    settings = settings or get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise RuntimeError(
            "Supabase configuration missing. "
            "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY, or use STORAGE_BACKEND=memory."
        )

    _client = create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
        options=ClientOptions(
            postgrest_client_timeout=settings.supabase_timeout_seconds,
            auto_refresh_token=False,
            persist_session=False,
        ),
    )
    return _client


def reset_client_cache() -> None:
    """Forget the shared client, e.g. after changing settings in tests."""
    global _client
    _client = None
