"""Tests for shared/exceptions.py."""

from shared.exceptions import (
    PhotoforgeError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    TransientStoreError,
)


class TestPhotoforgeError:
    def test_message(self):
        """PhotoforgeError should store message."""
        error = PhotoforgeError("Test error")
        assert error.message == "Test error"
        assert str(error) == "Test error"

    def test_default_code(self):
        """PhotoforgeError should default code to class name."""
        error = PhotoforgeError("Test error")
        assert error.code == "PhotoforgeError"

    def test_custom_code_and_details(self):
        error = PhotoforgeError("Test error", code="CUSTOM_ERROR", details={"key": "value"})
        assert error.code == "CUSTOM_ERROR"
        assert error.details == {"key": "value"}

    def test_to_dict(self):
        """to_dict should produce the API error body."""
        error = PhotoforgeError("Test error", code="TEST", details={"a": 1})
        assert error.to_dict() == {"error": "TEST", "message": "Test error", "details": {"a": 1}}


class TestHierarchy:
    def test_subclasses(self):
        for cls in (NotFoundError, ValidationError, AuthenticationError,
                    AuthorizationError, ConflictError):
            assert issubclass(cls, PhotoforgeError)

    def test_external_service_error_records_service(self):
        error = ExternalServiceError("down", service="replicate")
        assert error.service == "replicate"
        assert error.details["service"] == "replicate"

    def test_transient_store_error(self):
        error = TransientStoreError("connection reset", operation="jobs.get")
        assert error.code == "STORE_UNAVAILABLE"
        assert error.details == {"operation": "jobs.get"}

    def test_transient_store_error_without_operation(self):
        assert TransientStoreError("timeout").details == {}
