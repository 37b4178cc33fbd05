"""Tests for shared/database.py."""

from unittest.mock import ANY, MagicMock, patch

import pytest

from shared.database import get_supabase_client, reset_client_cache

from tests.conftest import make_settings


def supabase_settings(**overrides):
    values = dict(
        storage_backend="supabase",
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-key",
        supabase_timeout_seconds=4.0,
    )
    values.update(overrides)
    return make_settings(**values)


class TestSupabaseClient:
    def setup_method(self):
        """Reset cache before each test."""
        reset_client_cache()

    def teardown_method(self):
        reset_client_cache()

    @patch("shared.database.create_client")
    def test_creates_service_role_client(self, mock_create):
        """Should create client with the service role key and timeout."""
        mock_create.return_value = MagicMock()

        client = get_supabase_client(supabase_settings())

        mock_create.assert_called_once_with(
            "https://test.supabase.co", "test-key", options=ANY
        )
        options = mock_create.call_args.kwargs["options"]
        assert options.postgrest_client_timeout == 4.0
        assert client is mock_create.return_value

    @patch("shared.database.create_client")
    def test_caches_client(self, mock_create):
        """Should cache the client and not recreate it."""
        settings = supabase_settings()
        assert get_supabase_client(settings) is get_supabase_client(settings)
        mock_create.assert_called_once()

    @pytest.mark.parametrize("url,key", [
        ("", ""),
        ("", "test-key"),
        ("https://test.supabase.co", ""),
    ])
    def test_raises_without_config(self, url, key):
        """Should raise if URL or key is missing."""
        settings = supabase_settings(supabase_url=url, supabase_service_role_key=key)
        with pytest.raises(RuntimeError, match="configuration missing"):
            get_supabase_client(settings)

    @patch("shared.database.create_client")
    def test_reset_forces_new_client(self, mock_create):
        mock_create.side_effect = [MagicMock(), MagicMock()]
        settings = supabase_settings()

        first = get_supabase_client(settings)
        reset_client_cache()
        assert get_supabase_client(settings) is not first
