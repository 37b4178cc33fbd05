"""
Centralized configuration for the Photoforge backend.

All settings are loaded from environment variables with sensible defaults.
Module-specific settings should be namespaced (e.g., RAZORPAY_*, SUPABASE_*).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Photoforge API"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # CORS settings
    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Storage backend: "memory" keeps everything in process (dev/tests)
    storage_backend: Literal["memory", "supabase"] = "memory"

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_db_url: str = ""
    supabase_timeout_seconds: float = Field(default=10.0, gt=0)

    # Authentication (JWT issued by the external identity provider)
    auth_jwt_secret: str = ""
    auth_jwks_url: str = ""
    auth_issuer: str = ""
    auth_audience: str = ""
    auth_jwks_cache_ttl_seconds: int = Field(default=3600, ge=0)

    # Job provider
    job_provider: Literal["replicate", "mock"] = "mock"
    replicate_api_token: str = ""
    replicate_api_url: str = "https://api.replicate.com/v1"
    replicate_train_version: str = "8ede8c08a677a46d24fdaaa6e0eaad6f0b5a2c7a684a0120009e96b3cdaaa33c"
    replicate_generate_version: str = "8ede8c08a677a46d24fdaaa6e0eaad6f0b5a2c7a684a0120009e96b3cdaaa33c"
    webhook_base_url: str = ""
    provider_webhook_secret: str = ""
    provider_request_timeout_seconds: float = Field(default=30.0, gt=0)
    provider_retry_attempts: int = Field(default=3, ge=1)
    provider_retry_base_seconds: float = Field(default=1.0, ge=0)

    # Job pricing (credits)
    generate_job_credits: int = Field(default=1, gt=0)
    train_job_credits: int = Field(default=20, gt=0)

    # Job completion tracking
    job_timeout_seconds: int = Field(default=3600, gt=0)
    webhook_grace_seconds: int = Field(default=300, ge=0)
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    poll_backoff_factor: float = Field(default=2.0, ge=1)
    poll_max_interval_seconds: float = Field(default=60.0, gt=0)
    sweeper_enabled: bool = True
    sweeper_interval_seconds: float = Field(default=60.0, gt=0)

    # Payments
    payment_gateway: Literal["razorpay", "local"] = "local"
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    payment_currency: str = "INR"
    payment_pending_timeout_seconds: int = Field(default=86400, gt=0)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
