"""
Base exception classes for the Photoforge backend.

Each module should define its own exceptions that inherit from these bases.
This enables consistent error handling across the application.
"""

from typing import Optional, Any


class PhotoforgeError(Exception):
    """
    Base exception for all Photoforge errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(PhotoforgeError):
    """Resource not found."""

    pass


class ValidationError(PhotoforgeError):
    """Input validation failed."""

    pass


class AuthenticationError(PhotoforgeError):
    """Authentication failed (invalid or missing credentials)."""

    pass


class AuthorizationError(PhotoforgeError):
    """Authorization failed (insufficient permissions)."""

    pass


class ConflictError(PhotoforgeError):
    """Operation conflicts with the current state of a resource."""

    pass


class ExternalServiceError(PhotoforgeError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service


class TransientStoreError(PhotoforgeError):
    """
    A storage call failed in a way that is safe to retry.

    Raised (or translated to) by store implementations for connection
    drops and timeouts. Permanent failures such as constraint violations
    must never be wrapped in this class.
    """

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message,
            code="STORE_UNAVAILABLE",
            details={"operation": operation} if operation else {},
        )
