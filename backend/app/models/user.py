"""User model - the identity every owned record points at.

A user is created either from a device anchor (guest) or from a redeemed
verification token (full). A guest that redeems a claim link keeps its id
and device anchor and becomes claimed.
"""

import uuid
from datetime import datetime
from typing import Literal

from sqlalchemy import CheckConstraint, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

UserKind = Literal["guest", "claimed", "full"]
AuthProvider = Literal["guest", "magic_link"]

# Kinds that hold their device anchor as a unique key.
# Full identities created by email alone never take part in the index.
_ANCHORED_KINDS_SQL = "kind IN ('guest', 'claimed')"


class User(Base, TimestampMixin):
    """Identity record.

    Attributes:
        id: UUID primary key. Immutable; the only reference owned data uses.
        kind: ``guest``, ``claimed`` or ``full``.
        device_id: Per-installation device anchor. Unique among guest and
            claimed users.
        email: Verified email, stored lowercase. Unique when present.
        display_name: Name shown to group members. Set at creation; only the
            explicit profile update changes it.
        auth_provider: How the identity was first created.
        session_count: Successful authentications so far (starts at 1).
        upgrade_prompt_dismissed_at: When the "claim your account" nudge was
            dismissed. NULL = never.
        created_at: Creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "kind IN ('guest', 'claimed', 'full')",
            name="ck_users_kind",
        ),
        CheckConstraint(
            "auth_provider IN ('guest', 'magic_link')",
            name="ck_users_auth_provider",
        ),
        CheckConstraint(
            "kind = 'full' OR device_id IS NOT NULL",
            name="ck_users_anchored_kind_has_device",
        ),
        CheckConstraint(
            "kind = 'guest' OR email IS NOT NULL",
            name="ck_users_verified_kind_has_email",
        ),
        Index("uq_users_email", "email", unique=True),
        Index(
            "uq_users_device_id_anchored",
            "device_id",
            unique=True,
            postgresql_where=text(_ANCHORED_KINDS_SQL),
            sqlite_where=text(_ANCHORED_KINDS_SQL),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    kind: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="guest",
    )
    device_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    auth_provider: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="guest",
    )
    session_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default=text("1"),
    )
    upgrade_prompt_dismissed_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    @property
    def show_upgrade_prompt(self) -> bool:
        """Whether a guest should be nudged to claim the account.

        Never on the first session, never after dismissal, never once claimed.
        """
        return (
            self.kind == "guest"
            and self.session_count > 1
            and self.upgrade_prompt_dismissed_at is None
        )
