"""API error classes.

HTTP status codes and machine-readable error codes for the identity core.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Type-safe error handling in services/repositories
- Token redemption failures stay distinct so clients can choose between
  "resend link" and "this link was already used"
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    ``details`` carries one ``{"field": ..., "message": ...}`` entry per
    offending field.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session credential is provided.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Use for duplicate entries, conflicting state, etc.
    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InvalidStateError(APIError):
    """Business rule violation (422).

    Use when request is syntactically valid but violates business rules.
    E.g., redeeming a claim link for an identity that was claimed elsewhere.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="INVALID_STATE_TRANSITION",
            message=message,
            status_code=422,
        )


class TokenNotFoundError(APIError):
    """No verification token matches the presented value (404).

    Terminal: the client must request a new link.
    """

    def __init__(self) -> None:
        super().__init__(
            code="TOKEN_NOT_FOUND",
            message="Verification link is invalid",
            status_code=404,
        )


class TokenExpiredError(APIError):
    """Verification token exists but its window has closed (410).

    Terminal: the row is kept for audit but can never be redeemed.
    """

    def __init__(self) -> None:
        super().__init__(
            code="TOKEN_EXPIRED",
            message="Verification link has expired",
            status_code=410,
        )


class TokenAlreadyUsedError(APIError):
    """Verification token was already redeemed (409).

    Terminal: replaying a used link never succeeds.
    """

    def __init__(self) -> None:
        super().__init__(
            code="TOKEN_ALREADY_USED",
            message="Verification link has already been used",
            status_code=409,
        )


class StorageUnavailableError(APIError):
    """Identity or token store could not be reached (503).

    Retryable and intentionally opaque: driver messages are logged,
    never returned to the client.
    """

    def __init__(self, retry_after_seconds: int = 5) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            code="STORAGE_UNAVAILABLE",
            message="Service temporarily unavailable, please retry",
            status_code=503,
        )
