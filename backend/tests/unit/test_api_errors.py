"""Tests for API error classes.

HTTP status codes and error codes for the identity core.
"""

import pytest

from app.core.errors import (
    APIError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StorageUnavailableError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenNotFoundError,
    UnauthorizedError,
    ValidationError,
)


class TestAPIError:
    """Tests for base APIError class."""

    def test_api_error_has_required_attributes(self):
        """APIError should have code, message, status_code, details."""
        error = APIError(
            code="TEST_ERROR",
            message="Test message",
            status_code=418,
            details=[{"field": "test"}],
        )
        assert error.code == "TEST_ERROR"
        assert error.message == "Test message"
        assert error.status_code == 418
        assert error.details == [{"field": "test"}]

    def test_api_error_defaults_to_500_without_details(self):
        """APIError should default to 500 and no details."""
        error = APIError(code="TEST", message="Test")
        assert error.status_code == 500
        assert error.details is None
        assert str(error) == "Test"


@pytest.mark.parametrize(
    ("error", "status_code", "code"),
    [
        (ValidationError("bad"), 400, "VALIDATION_ERROR"),
        (UnauthorizedError(), 401, "UNAUTHORIZED"),
        (NotFoundError("Guest user for this device"), 404, "NOT_FOUND"),
        (ConflictError("EMAIL_ALREADY_EXISTS", "taken"), 409, "EMAIL_ALREADY_EXISTS"),
        (InvalidStateError("nope"), 422, "INVALID_STATE_TRANSITION"),
        (TokenNotFoundError(), 404, "TOKEN_NOT_FOUND"),
        (TokenExpiredError(), 410, "TOKEN_EXPIRED"),
        (TokenAlreadyUsedError(), 409, "TOKEN_ALREADY_USED"),
        (StorageUnavailableError(), 503, "STORAGE_UNAVAILABLE"),
    ],
)
def test_error_maps_to_status_and_code(error: APIError, status_code: int, code: str):
    """Each error carries its HTTP status and machine-readable code."""
    assert error.status_code == status_code
    assert error.code == code


class TestNotFoundError:
    """Tests for NotFoundError messages."""

    def test_message_with_id(self):
        """Resource id is included when given."""
        error = NotFoundError("User", "123")
        assert error.message == "User with id '123' not found"

    def test_message_without_id(self):
        """Resource name alone otherwise."""
        assert NotFoundError("User").message == "User not found"


class TestStorageUnavailableError:
    """Tests for StorageUnavailableError."""

    def test_default_retry_after(self):
        """Clients are told when to retry."""
        assert StorageUnavailableError().retry_after_seconds == 5

    def test_message_is_opaque(self):
        """No driver detail leaks into the message."""
        error = StorageUnavailableError(retry_after_seconds=30)
        assert error.retry_after_seconds == 30
        assert "retry" in error.message
