"""
Shared infrastructure for Photoforge backend.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory
- exceptions: Base exception classes
- memory: In-process transactional store used by the memory backend
- retry: Bounded retry decorator for idempotent store calls

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .database import get_supabase_client, reset_client_cache
from .exceptions import (
    PhotoforgeError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    TransientStoreError,
)
from .logging_config import configure_logging, security_logger
from .memory import MemoryStore
from .models import AuthenticatedUser
from .retry import store_retry, is_transient_store_error

__all__ = [
    "Settings",
    "get_settings",
    "get_supabase_client",
    "reset_client_cache",
    "PhotoforgeError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "ExternalServiceError",
    "TransientStoreError",
    "configure_logging",
    "security_logger",
    "MemoryStore",
    "AuthenticatedUser",
    "store_retry",
    "is_transient_store_error",
]
