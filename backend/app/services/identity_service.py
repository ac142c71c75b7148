"""Device-anchored guest identity.

Resolves a device anchor to exactly one user, creating a guest on first
sight. Also owns the device-keyed upgrade-prompt dismissal and the explicit
display-name update.

Race handling: the guest insert runs inside a savepoint. When two requests
for the same unseen device race, the loser's insert violates
``uq_users_device_id_anchored``; the IntegrityError is caught, the savepoint
rolled back, and the winner's row re-read. The conflict never reaches the
caller.

First write wins: a returning device keeps the display name it was created
with. Renaming goes through update_display_name only.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.user_repository import UserRepository
from app.services.auth_validation import (
    raise_for_field_errors,
    validate_device_id,
    validate_display_name,
    validate_guest_auth,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceResolution:
    """Outcome of resolving a device anchor.

    Attributes:
        user: The one user anchored to the device.
        created: True if this call created the guest.
    """

    user: User
    created: bool


async def resolve_device_identity(
    db: AsyncSession,
    *,
    device_id: str,
    display_name: str,
) -> DeviceResolution:
    """Return the user anchored to a device, creating a guest if needed.

    Every successful call counts as one authentication (session_count + 1),
    except the creating call, which starts the count at 1. The caller
    commits.

    Args:
        db: Async database session.
        device_id: Device anchor supplied by the client.
        display_name: Name for a newly created guest. Ignored for a
            returning device.

    Returns:
        DeviceResolution with the resolved user.

    Raises:
        ValidationError: If the device anchor or trimmed name is empty.
    """
    raise_for_field_errors(validate_guest_auth(device_id, display_name))
    name = display_name.strip()

    existing = await UserRepository.get_by_device_id(db, device_id)
    if existing is not None:
        return await _returning_device(db, existing)

    try:
        async with db.begin_nested():
            user = await UserRepository.create_guest(
                db, device_id=device_id, display_name=name
            )
    except IntegrityError:
        # Concurrent request created the guest first.
        # Savepoint was rolled back; session is still usable.
        existing = await UserRepository.get_by_device_id(db, device_id)
        if existing is None:
            raise  # Not a device conflict
        logger.info(
            "Guest creation lost device race",
            extra={"user_id": str(existing.id)},
        )
        return await _returning_device(db, existing)

    logger.info("Created guest user", extra={"user_id": str(user.id)})
    return DeviceResolution(user=user, created=True)


async def _returning_device(db: AsyncSession, user: User) -> DeviceResolution:
    counted = await UserRepository.increment_session_count(db, user.id)
    return DeviceResolution(user=counted or user, created=False)


async def dismiss_upgrade_prompt(
    db: AsyncSession,
    *,
    device_id: str,
    now: datetime | None = None,
) -> bool:
    """Record that the "claim your account" nudge was dismissed on a device.

    Idempotent: the first dismissal timestamp is kept, repeats are no-ops,
    and an unknown device is acknowledged without effect. The caller commits.

    Args:
        db: Async database session.
        device_id: Device anchor.
        now: Dismissal time. Defaults to the current time.

    Returns:
        True if a user is anchored to the device (dismissal is in effect),
        False for an unknown device.

    Raises:
        ValidationError: If the device anchor is empty.
    """
    raise_for_field_errors(validate_device_id(device_id))

    user = await UserRepository.get_by_device_id(db, device_id)
    if user is None:
        return False

    recorded = await UserRepository.mark_upgrade_prompt_dismissed(
        db, user.id, dismissed_at=now or datetime.now(UTC)
    )
    if recorded:
        logger.info("Upgrade prompt dismissed", extra={"user_id": str(user.id)})
    return True


async def update_display_name(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    display_name: str,
) -> User | None:
    """Rename a user. The only operation that changes a display name.

    Args:
        db: Async database session.
        user_id: UUID of the user.
        display_name: New name; surrounding whitespace is trimmed.

    Returns:
        Updated User, or None if the user does not exist.

    Raises:
        ValidationError: If the trimmed name is empty.
    """
    raise_for_field_errors(validate_display_name(display_name))
    return await UserRepository.update(
        db, user_id, display_name=display_name.strip()
    )
