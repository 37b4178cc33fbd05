"""Tests for shared/config.py."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from shared.config import Settings, get_settings


class TestSettings:
    def test_default_values(self):
        """Settings should have sensible defaults."""
        settings = Settings(_env_file=None)
        assert settings.app_name == "Photoforge API"
        assert settings.storage_backend == "memory"
        assert settings.job_provider == "mock"
        assert settings.payment_gateway == "local"
        assert settings.payment_currency == "INR"
        assert settings.provider_retry_attempts == 3
        assert settings.auth_jwks_cache_ttl_seconds == 3600

    def test_loads_from_env(self):
        """Settings should load from environment variables."""
        with patch.dict(os.environ, {
            "STORAGE_BACKEND": "supabase",
            "JOB_TIMEOUT_SECONDS": "120",
            "RAZORPAY_KEY_ID": "rzp_test_123",
        }):
            settings = Settings(_env_file=None)
        assert settings.storage_backend == "supabase"
        assert settings.job_timeout_seconds == 120
        assert settings.razorpay_key_id == "rzp_test_123"

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, storage_backend="sqlite")

    def test_rejects_non_positive_prices(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, generate_job_credits=0)


class TestGetSettings:
    def test_is_cached(self):
        """get_settings should return the same instance."""
        assert get_settings() is get_settings()
