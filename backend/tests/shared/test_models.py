"""
Tests for shared models.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from shared.models import AuthenticatedUser


class TestAuthenticatedUser:
    """Tests for the AuthenticatedUser model in shared."""

    def test_create_with_required_fields(self):
        user = AuthenticatedUser(id="user-123")
        assert user.id == "user-123"
        assert user.email is None
        assert user.email_verified is False
        assert user.role == "user"

    def test_all_fields(self):
        now = datetime.now(timezone.utc)
        user = AuthenticatedUser(
            id="user-123",
            email="test@example.com",
            email_verified=True,
            last_sign_in=now,
            role="admin",
        )
        assert user.email == "test@example.com"
        assert user.last_sign_in == now
        assert user.role == "admin"

    def test_invalid_email(self):
        with pytest.raises(ValidationError):
            AuthenticatedUser(id="user-123", email="not-an-email")

    def test_is_immutable(self):
        user = AuthenticatedUser(id="user-123")
        with pytest.raises(ValidationError):
            user.id = "other"

    def test_ignores_extra_fields(self):
        user = AuthenticatedUser(id="user-123", tier="free")
        assert not hasattr(user, "tier")
