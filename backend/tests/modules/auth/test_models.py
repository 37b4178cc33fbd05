import pytest
from pydantic import ValidationError

from modules.auth.models import JWTPayload


class TestJWTPayload:
    def test_parse_jwt_payload(self):
        """Should parse JWT payload from dict."""
        data = {
            "sub": "user-123",
            "email": "test@example.com",
            "exp": 1704067200,
            "iat": 1704063600,
            "aud": "authenticated",
            "role": "authenticated",
        }
        payload = JWTPayload(**data)
        assert payload.sub == "user-123"
        assert payload.email == "test@example.com"

    def test_jwt_defaults(self):
        """JWTPayload should have sensible defaults."""
        payload = JWTPayload(sub="user-123", exp=1704067200)
        assert payload.role == "authenticated"
        assert payload.aud is None
        assert payload.email_verified is None

    def test_audience_list(self):
        payload = JWTPayload(sub="u", exp=1, aud=["a", "b"])
        assert payload.aud == ["a", "b"]

    def test_unknown_claims_ignored(self):
        payload = JWTPayload(sub="u", exp=1, app_metadata={"provider": "email"})
        assert not hasattr(payload, "app_metadata")

    def test_subject_required(self):
        with pytest.raises(ValidationError):
            JWTPayload(sub="", exp=1)
