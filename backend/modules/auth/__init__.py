"""
Authentication module.

Validates bearer tokens issued by the external identity provider.

Public API:
- IAuthService: Interface for auth operations
- AuthService: JWKS (RS256) and shared-secret (HS256) validation
- JWKSCache: Cached signing keys with TTL and rotation refetch
- Auth exceptions: InvalidTokenError, ExpiredTokenError, etc.
"""

from .interfaces import IAuthService
from .models import JWTPayload
from .exceptions import (
    InvalidTokenError,
    ExpiredTokenError,
    MissingTokenError,
    AuthNotConfiguredError,
    KeySetUnavailableError,
)
from .jwks import JWKSCache
from .service import AuthService

__all__ = [
    # Interface
    "IAuthService",
    # Models
    "JWTPayload",
    # Exceptions
    "InvalidTokenError",
    "ExpiredTokenError",
    "MissingTokenError",
    "AuthNotConfiguredError",
    "KeySetUnavailableError",
    # Implementations
    "AuthService",
    "JWKSCache",
]
