"""Repository for User CRUD operations.

Provides database access for the users table. Uniqueness of device anchors
(among guest/claimed users) and of emails is enforced by the database; the
create methods surface violations as IntegrityError so services can recover
from concurrent inserts.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'kind', 'email', 'device_id' or timestamps.
# - id: primary key, immutable
# - kind/email: change only through verified promotion (promote_to_claimed)
# - device_id: the anchor a guest is recognized by, immutable
_UPDATABLE_FIELDS: frozenset[str] = frozenset({"display_name"})

_ANCHORED_KINDS = ("guest", "claimed")


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id, populate_existing=True)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = (
            select(User)
            .where(User.email == email.strip().lower())
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_device_id(db: AsyncSession, device_id: str) -> User | None:
        """Fetch the guest or claimed user anchored to a device.

        Full users never resolve by device, matching the partial unique
        index ``uq_users_device_id_anchored``.

        Args:
            db: Async database session.
            device_id: Device anchor supplied by the client.

        Returns:
            User if found, None otherwise.
        """
        stmt = (
            select(User)
            .where(User.device_id == device_id, User.kind.in_(_ANCHORED_KINDS))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_guest(
        db: AsyncSession,
        *,
        device_id: str,
        display_name: str,
    ) -> User:
        """Create a guest user anchored to a device.

        Args:
            db: Async database session.
            device_id: Device anchor.
            display_name: Trimmed display name.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If the device already has a user.
        """
        user = User(
            kind="guest",
            auth_provider="guest",
            device_id=device_id,
            display_name=display_name,
            session_count=1,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def create_full(
        db: AsyncSession,
        *,
        email: str,
        display_name: str,
    ) -> User:
        """Create a full user from a verified email.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: Verified email address.
            display_name: Initial display name.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            kind="full",
            auth_provider="magic_link",
            email=email.strip().lower(),
            display_name=display_name,
            session_count=1,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def promote_to_claimed(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        email: str,
    ) -> User | None:
        """Promote a guest to a claimed user by attaching a verified email.

        Single conditional UPDATE: only a row that is still a guest is
        promoted. ``id`` and ``device_id`` are never touched.

        Args:
            db: Async database session.
            user_id: UUID of the guest.
            email: Verified email address.

        Returns:
            Promoted User, or None if no guest with that id exists.

        Raises:
            sqlalchemy.exc.IntegrityError: If another user holds the email.
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.kind == "guest")
            .values(kind="claimed", email=email.strip().lower())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        return await UserRepository._reload(db, user_id)

    @staticmethod
    async def increment_session_count(
        db: AsyncSession, user_id: uuid.UUID
    ) -> User | None:
        """Atomically count one more successful authentication.

        Args:
            db: Async database session.
            user_id: UUID of the user.

        Returns:
            Updated User if found, None if user does not exist.
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(session_count=User.session_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            return None
        return await UserRepository._reload(db, user_id)

    @staticmethod
    async def mark_upgrade_prompt_dismissed(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        dismissed_at: datetime,
    ) -> bool:
        """Record the first dismissal of the upgrade prompt.

        Later calls leave the original timestamp in place.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            dismissed_at: Dismissal timestamp.

        Returns:
            True if this call recorded the dismissal, False if it was
            already recorded.
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.upgrade_prompt_dismissed_at.is_(None))
            .values(upgrade_prompt_dismissed_at=dismissed_at)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count > 0

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        **kwargs: str,
    ) -> User | None:
        """Update user profile fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def _reload(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Return the user with attributes refreshed after a Core UPDATE."""
        user = await db.get(User, user_id)
        if user is not None:
            await db.refresh(user)
        return user
