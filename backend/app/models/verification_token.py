"""Verification token model - magic link tokens.

Single-use, time-limited. Only the SHA-256 hash of the token is stored;
the plain value exists solely in the delivered link. Used and expired rows
are kept for audit and rate limiting.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, false, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class VerificationToken(Base):
    """Magic link verification token.

    Attributes:
        id: UUID primary key.
        token_hash: SHA-256 hex digest of the plain token. Unique.
        email: Address this token authorizes (lowercase).
        bound_user_id: Guest identity this token claims. NULL for a plain
            email sign-in / sign-up.
        used: Flipped to True exactly once, on redemption.
        created_at: Issuance timestamp.
        expires_at: End of the redemption window.
    """

    __tablename__ = "verification_tokens"
    __table_args__ = (
        Index("idx_verification_tokens_email", "email"),
        Index("idx_verification_tokens_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    bound_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
