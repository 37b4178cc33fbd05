"""
Authentication service implementation.

Validates bearer tokens from the identity provider. RS256 tokens are
checked against the provider's JWKS; HS256 tokens against a shared
secret. Either or both may be configured.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from shared.config import Settings, get_settings
from shared.models import AuthenticatedUser

from .exceptions import (
    AuthNotConfiguredError,
    ExpiredTokenError,
    InvalidTokenError,
    MissingTokenError,
)
from .interfaces import IAuthService
from .jwks import JWKSCache
from .models import JWTPayload

ASYMMETRIC_ALGORITHMS = ("RS256",)
SYMMETRIC_ALGORITHMS = ("HS256",)


class AuthService(IAuthService):
    """
    Implementation of the authentication service.

    The JWKS cache is created from settings unless one is passed in.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        jwks: Optional[JWKSCache] = None,
    ):
        self._settings = settings or get_settings()
        if jwks is None and self._settings.auth_jwks_url:
            jwks = JWKSCache(
                self._settings.auth_jwks_url,
                ttl_seconds=self._settings.auth_jwks_cache_ttl_seconds,
            )
        self._jwks = jwks

    async def _resolve_key(self, token: str) -> tuple[Any, list[str]]:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.DecodeError as e:
            raise InvalidTokenError(f"Malformed token: {e}")

        algorithm = header.get("alg")
        if algorithm in ASYMMETRIC_ALGORITHMS and self._jwks is not None:
            signing_key = await self._jwks.get_signing_key(header.get("kid"))
            return signing_key.key, list(ASYMMETRIC_ALGORITHMS)
        if algorithm in SYMMETRIC_ALGORITHMS and self._settings.auth_jwt_secret:
            return self._settings.auth_jwt_secret, list(SYMMETRIC_ALGORITHMS)
        if self._jwks is None and not self._settings.auth_jwt_secret:
            raise AuthNotConfiguredError()
        raise InvalidTokenError(f"Unsupported token algorithm: {algorithm}")

    async def validate_token(self, token: str) -> AuthenticatedUser:
        """
        Validate a JWT token and return the authenticated user.

        Audience and issuer are only checked when configured.
        """
        if not token:
            raise MissingTokenError()

        key, algorithms = await self._resolve_key(token)
        audience = self._settings.auth_audience or None
        issuer = self._settings.auth_issuer or None

        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=algorithms,
                audience=audience,
                issuer=issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_aud": audience is not None,
                },
            )
            claims = JWTPayload(**payload)
        except jwt.ExpiredSignatureError:
            raise ExpiredTokenError()
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(str(e))
        except PydanticValidationError:
            raise InvalidTokenError("Token is missing required claims")

        if claims.email_verified is not None:
            email_verified = claims.email_verified
        else:
            email_verified = claims.email_confirmed_at is not None

        return AuthenticatedUser(
            id=claims.sub,
            email=claims.email or None,
            email_verified=email_verified,
            last_sign_in=(
                datetime.fromtimestamp(claims.iat, tz=timezone.utc) if claims.iat else None
            ),
            role=claims.role if claims.role != "authenticated" else "user",
        )
