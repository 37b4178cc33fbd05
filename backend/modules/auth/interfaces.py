"""
Authentication module interface.

Other modules should depend on IAuthService, not the concrete implementation.
This enables testing with mocks and future extraction to a microservice.
"""

from typing import Protocol, runtime_checkable

from shared.models import AuthenticatedUser


@runtime_checkable
class IAuthService(Protocol):
    """
    Interface for authentication operations.

    User identity is owned by an external identity provider; this backend
    only checks bearer tokens and reads the user id from them.
    """

    async def validate_token(self, token: str) -> AuthenticatedUser:
        """
        Validate a JWT token and return the authenticated user.

        Args:
            token: Bearer token issued by the identity provider

        Returns:
            AuthenticatedUser with user ID and basic info

        Raises:
            AuthenticationError: If token is invalid or expired
        """
        ...
