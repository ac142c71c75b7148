"""Magic link issuance and redemption.

Issuance mints a 32-byte URL-safe token, stores only its SHA-256 hash with a
fixed 15 minute window, and hands the plain token back for out-of-band
delivery. Issuing again for the same email leaves earlier tokens valid until
their own expiry.

Redemption state machine:
- PENDING -> REDEEMED is the only legal transition. It is one conditional
  UPDATE (unused AND unexpired), so concurrent redemptions of the same token
  cannot both win.
- When the UPDATE matches nothing, the row is re-read to report the terminal
  failure: TOKEN_NOT_FOUND, TOKEN_ALREADY_USED or TOKEN_EXPIRED.
- The user side (claim a bound guest, sign in an existing email, or create a
  full user) runs in the same transaction. The caller commits once, so a
  used token never exists without its identity change, or vice versa.
"""

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Literal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenNotFoundError,
)
from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.repositories.verification_token_repository import VerificationTokenRepository
from app.services.auth_validation import (
    normalize_email,
    raise_for_field_errors,
    validate_verification_request,
)

logger = logging.getLogger(__name__)

TOKEN_TTL = timedelta(minutes=15)

# 32 random bytes -> 43 URL-safe characters
_TOKEN_BYTES = 32

RedemptionOutcome = Literal["created", "signed_in", "claimed"]


@dataclass(frozen=True)
class IssuedVerificationToken:
    """A freshly issued token, ready for delivery.

    Attributes:
        token: Plain token. Only ever placed in the delivered link.
        email: Normalized address the token authorizes.
        expires_at: End of the redemption window.
        bound_user_id: Guest being claimed, or None for plain sign-in.
    """

    token: str = field(repr=False)
    email: str
    expires_at: datetime
    bound_user_id: uuid.UUID | None = None


@dataclass(frozen=True)
class Redemption:
    """Outcome of a successful redemption.

    Attributes:
        user: The user the next session is issued for.
        outcome: ``claimed`` (guest promoted), ``signed_in`` (existing email)
            or ``created`` (new full user).
    """

    user: User
    outcome: RedemptionOutcome


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest stored in place of a plain token."""
    return hashlib.sha256(token.encode()).hexdigest()


def _generate_token() -> tuple[str, str]:
    """Generate a magic link token and its SHA-256 hash.

    Returns:
        (plain_token, token_hash). Plain for the link, hash for DB storage.
    """
    plain = secrets.token_urlsafe(_TOKEN_BYTES)
    return plain, hash_token(plain)


def _as_utc(value: datetime) -> datetime:
    # Some drivers hand back naive datetimes; all stored timestamps are UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _default_display_name(email: str) -> str:
    return email.split("@", 1)[0]


# ===================================================================
# Issuance
# ===================================================================


async def issue_verification_token(
    db: AsyncSession,
    *,
    email: str,
    device_id: str | None = None,
    now: datetime | None = None,
) -> IssuedVerificationToken:
    """Issue a verification token for an email, optionally claiming a guest.

    Plain sign-in/sign-up when ``device_id`` is None. With a ``device_id``
    the token is bound to the guest anchored to that device, and redeeming
    it promotes that guest. The caller commits, then schedules delivery.

    Args:
        db: Async database session.
        email: Address to verify.
        device_id: Device anchor of the guest to claim (claim flow).
        now: Issuance time. Defaults to the current time.

    Returns:
        IssuedVerificationToken carrying the plain token for delivery.

    Raises:
        ValidationError: If the email is malformed or device_id is blank.
        NotFoundError: Claim flow, no guest anchored to the device.
        ConflictError: Claim flow, the email is taken or the device's
            account is already claimed.
    """
    raise_for_field_errors(validate_verification_request(email, device_id))
    normalized = normalize_email(email)

    bound_user_id: uuid.UUID | None = None
    if device_id is not None:
        bound_user_id = await _claimable_guest_id(db, device_id, normalized)

    issued_at = now or datetime.now(UTC)
    expires_at = issued_at + TOKEN_TTL
    plain_token, token_hash = _generate_token()

    await VerificationTokenRepository.create(
        db,
        token_hash=token_hash,
        email=normalized,
        created_at=issued_at,
        expires_at=expires_at,
        bound_user_id=bound_user_id,
    )

    logger.info(
        "Verification token issued",
        extra={
            "claim": bound_user_id is not None,
            "user_id": str(bound_user_id) if bound_user_id else None,
        },
    )
    return IssuedVerificationToken(
        token=plain_token,
        email=normalized,
        expires_at=expires_at,
        bound_user_id=bound_user_id,
    )


async def _claimable_guest_id(
    db: AsyncSession, device_id: str, email: str
) -> uuid.UUID:
    guest = await UserRepository.get_by_device_id(db, device_id)
    if guest is None:
        raise NotFoundError("Guest user for this device")
    if guest.kind != "guest":
        raise ConflictError(
            code="ALREADY_CLAIMED",
            message="The account on this device has already been claimed",
        )
    if await UserRepository.get_by_email(db, email) is not None:
        raise ConflictError(
            code="EMAIL_ALREADY_EXISTS",
            message="This email is already associated with an account",
        )
    return guest.id


# ===================================================================
# Redemption
# ===================================================================


async def redeem_verification_token(
    db: AsyncSession,
    *,
    token: str,
    now: datetime | None = None,
) -> Redemption:
    """Redeem a raw token and resolve the user it authorizes.

    Not safe to retry with the same token: a second presentation always
    fails with TokenAlreadyUsedError. The caller commits; on any exception
    the caller rolls back and the token stays unused.

    Args:
        db: Async database session.
        token: Plain token from the link.
        now: Redemption time. Defaults to the current time.

    Returns:
        Redemption with the created, signed-in, or claimed user.

    Raises:
        TokenNotFoundError: No token matches.
        TokenAlreadyUsedError: Token was already redeemed.
        TokenExpiredError: Token window has closed.
        InvalidStateError: Bound guest was claimed with another email or is gone.
        ConflictError: Bound guest's email was taken by another user meanwhile.
    """
    if not token or not token.strip():
        raise TokenNotFoundError()

    redeemed_at = now or datetime.now(UTC)
    token_hash = hash_token(token.strip())

    won = await VerificationTokenRepository.mark_used(
        db, token_hash=token_hash, now=redeemed_at
    )
    if not won:
        raise await _redemption_failure(db, token_hash, redeemed_at)

    vt = await VerificationTokenRepository.get_by_hash(db, token_hash)
    if vt is None:
        raise TokenNotFoundError()

    outcome: RedemptionOutcome
    if vt.bound_user_id is not None:
        user = await _claim_bound_guest(db, vt.bound_user_id, vt.email)
        outcome = "claimed"
    else:
        user, created = await _find_or_create_by_email(db, vt.email)
        outcome = "created" if created else "signed_in"

    if outcome != "created":
        user = await UserRepository.increment_session_count(db, user.id) or user

    logger.info(
        "Verification token redeemed",
        extra={"user_id": str(user.id), "outcome": outcome},
    )
    return Redemption(user=user, outcome=outcome)


async def _redemption_failure(
    db: AsyncSession, token_hash: str, redeemed_at: datetime
) -> Exception:
    """Classify why the compare-and-set matched no row."""
    vt = await VerificationTokenRepository.get_by_hash(db, token_hash)
    if vt is None:
        return TokenNotFoundError()
    if vt.used:
        return TokenAlreadyUsedError()
    if _as_utc(vt.expires_at) < redeemed_at:
        return TokenExpiredError()
    # Unused and unexpired yet not updated: a concurrent redemption won
    # between the UPDATE and this read.
    return TokenAlreadyUsedError()


async def _claim_bound_guest(
    db: AsyncSession, user_id: uuid.UUID, email: str
) -> User:
    """Promote the guest a claim token is bound to, keeping id and device."""
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise InvalidStateError("The account this link claims no longer exists")

    if user.kind == "guest":
        try:
            async with db.begin_nested():
                promoted = await UserRepository.promote_to_claimed(
                    db, user.id, email=email
                )
        except IntegrityError as exc:
            raise ConflictError(
                code="EMAIL_ALREADY_EXISTS",
                message="This email is already associated with an account",
            ) from exc
        if promoted is not None:
            logger.info("Guest claimed", extra={"user_id": str(promoted.id)})
            return promoted
        # Promoted by a concurrent redemption; fall through to re-check
        user = await UserRepository.get_by_id(db, user_id)
        if user is None:
            raise InvalidStateError("The account this link claims no longer exists")

    if user.email == email:
        return user
    raise InvalidStateError("This account was already claimed with a different email")


async def _find_or_create_by_email(db: AsyncSession, email: str) -> tuple[User, bool]:
    """Return the user holding an email, creating a full user if none does."""
    existing = await UserRepository.get_by_email(db, email)
    if existing is not None:
        return existing, False

    try:
        async with db.begin_nested():
            user = await UserRepository.create_full(
                db, email=email, display_name=_default_display_name(email)
            )
    except IntegrityError:
        # Concurrent redemption for the same email created the user first
        existing = await UserRepository.get_by_email(db, email)
        if existing is None:
            raise  # Unrecoverable
        return existing, False

    logger.info("Created user from verified email", extra={"user_id": str(user.id)})
    return user, True
