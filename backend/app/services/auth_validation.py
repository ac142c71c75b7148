"""Input validation for the identity operations.

One validation function per operation input. Each returns a list of
field errors (``{"field": ..., "message": ...}``); an empty list means the
input is acceptable. ``raise_for_field_errors`` turns a non-empty list into a
ValidationError so services fail with a structured 400 instead of a crash.

WHY PURE FUNCTIONS: Services call these before touching the database, and
the same rules apply whether input came from an HTTP body or another module.
"""

from email_validator import EmailNotValidError, validate_email

from app.core.errors import ValidationError

_MAX_NAME_LENGTH = 255
_MAX_DEVICE_ID_LENGTH = 255
_MAX_EMAIL_LENGTH = 255

# PostgreSQL text columns reject NUL
_NULL_BYTE = "\x00"

FieldErrors = list[dict[str, str]]


def _field_error(field: str, message: str) -> dict[str, str]:
    return {"field": field, "message": message}


def _check_required_text(
    field: str, value: str | None, *, max_length: int, stored_trimmed: bool = True
) -> FieldErrors:
    if value is None or not value.strip():
        return [_field_error(field, "must not be empty")]
    if _NULL_BYTE in value:
        return [_field_error(field, "must not contain null bytes")]
    # Device anchors are stored verbatim, names trimmed
    stored = value.strip() if stored_trimmed else value
    if len(stored) > max_length:
        return [_field_error(field, f"must be at most {max_length} characters")]
    return []


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address for storage and lookup."""
    return email.strip().lower()


def check_email(email: str | None, field: str = "email") -> FieldErrors:
    """Check that an email address is syntactically valid.

    Deliverability (DNS) is not checked; the verification link is the proof
    of ownership.
    """
    if email is None or not email.strip():
        return [_field_error(field, "must not be empty")]
    if _NULL_BYTE in email:
        return [_field_error(field, "must not contain null bytes")]
    if len(email.strip()) > _MAX_EMAIL_LENGTH:
        return [_field_error(field, f"must be at most {_MAX_EMAIL_LENGTH} characters")]
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return [_field_error(field, "is not a valid email address")]
    return []


def validate_guest_auth(device_id: str | None, display_name: str | None) -> FieldErrors:
    """Validate guest authentication input."""
    return _check_required_text(
        "device_id", device_id, max_length=_MAX_DEVICE_ID_LENGTH, stored_trimmed=False
    ) + _check_required_text("name", display_name, max_length=_MAX_NAME_LENGTH)


def validate_verification_request(
    email: str | None, device_id: str | None = None
) -> FieldErrors:
    """Validate a request for an email verification link.

    ``device_id`` is optional; when given (claim flow) it must be non-empty.
    """
    errors = check_email(email)
    if device_id is not None:
        errors += _check_required_text(
            "device_id",
            device_id,
            max_length=_MAX_DEVICE_ID_LENGTH,
            stored_trimmed=False,
        )
    return errors


def validate_device_id(device_id: str | None) -> FieldErrors:
    """Validate a bare device anchor (upgrade-prompt dismissal)."""
    return _check_required_text(
        "device_id", device_id, max_length=_MAX_DEVICE_ID_LENGTH, stored_trimmed=False
    )


def validate_display_name(display_name: str | None) -> FieldErrors:
    """Validate a profile display name update."""
    return _check_required_text("name", display_name, max_length=_MAX_NAME_LENGTH)


def raise_for_field_errors(errors: FieldErrors) -> None:
    """Raise ValidationError carrying all field errors, if any.

    Raises:
        ValidationError: If ``errors`` is non-empty.
    """
    if errors:
        raise ValidationError("Request validation failed", details=errors)
