"""Repository for VerificationToken CRUD operations.

Single-use magic link tokens stored as SHA-256 hashes with a fixed
redemption window. Rows are never deleted on use; the used flag is flipped
by a conditional UPDATE so two concurrent redemptions cannot both succeed.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.verification_token import VerificationToken


class VerificationTokenRepository:
    """Stateless repository for VerificationToken table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        token_hash: str,
        email: str,
        created_at: datetime,
        expires_at: datetime,
        bound_user_id: uuid.UUID | None = None,
    ) -> VerificationToken:
        """Store a new verification token.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the plain token.
            email: Address the token authorizes.
            created_at: Issuance timestamp.
            expires_at: End of the redemption window.
            bound_user_id: Guest being claimed, if any.

        Returns:
            Created VerificationToken.

        Raises:
            sqlalchemy.exc.IntegrityError: If the hash already exists.
        """
        vt = VerificationToken(
            token_hash=token_hash,
            email=email.strip().lower(),
            bound_user_id=bound_user_id,
            used=False,
            created_at=created_at,
            expires_at=expires_at,
        )
        db.add(vt)
        await db.flush()
        return vt

    @staticmethod
    async def get_by_hash(
        db: AsyncSession,
        token_hash: str,
    ) -> VerificationToken | None:
        """Look up a token by its hash.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the plain token.

        Returns:
            VerificationToken if found, None otherwise.
        """
        stmt = (
            select(VerificationToken)
            .where(VerificationToken.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_used(
        db: AsyncSession,
        *,
        token_hash: str,
        now: datetime,
    ) -> bool:
        """Atomically flip an unused, unexpired token to used.

        Compare-and-set: the WHERE clause carries the whole redeemability
        check, so exactly one caller can win.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the plain token.
            now: Current time, compared against expires_at.

        Returns:
            True if this call redeemed the token, False otherwise.
        """
        stmt = (
            update(VerificationToken)
            .where(
                VerificationToken.token_hash == token_hash,
                VerificationToken.used.is_(False),
                VerificationToken.expires_at >= now,
            )
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count == 1

    @staticmethod
    async def delete_expired(db: AsyncSession, *, before: datetime) -> int:
        """Delete tokens whose window closed before a cutoff (retention cleanup).

        Args:
            db: Async database session.
            before: Tokens with expires_at earlier than this are removed.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationToken).where(VerificationToken.expires_at < before)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
