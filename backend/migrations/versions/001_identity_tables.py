"""Create identity tables: users, verification_tokens, and the ledger tables
that reference users.

Revision ID: 001_identity_tables
Revises:
Create Date: 2026-10-17

- users: guest/claimed/full identities. Device anchors are unique among
  guest and claimed users (partial index); emails are unique.
- verification_tokens: hashed single-use magic link tokens.
- groups, group_members, expenses, expense_splits, settlements: every user
  reference is a plain FK to users.id.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_identity_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_USERS_ID = "users.id"
_GROUPS_ID = "groups.id"


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        _id_column(),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("device_id", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("auth_provider", sa.String(20), nullable=False),
        sa.Column(
            "session_count", sa.Integer(), server_default=sa.text("1"), nullable=False
        ),
        sa.Column(
            "upgrade_prompt_dismissed_at", sa.DateTime(timezone=True), nullable=True
        ),
        *_timestamp_columns(),
        sa.CheckConstraint(
            "kind IN ('guest', 'claimed', 'full')", name="ck_users_kind"
        ),
        sa.CheckConstraint(
            "auth_provider IN ('guest', 'magic_link')",
            name="ck_users_auth_provider",
        ),
        sa.CheckConstraint(
            "kind = 'full' OR device_id IS NOT NULL",
            name="ck_users_anchored_kind_has_device",
        ),
        sa.CheckConstraint(
            "kind = 'guest' OR email IS NOT NULL",
            name="ck_users_verified_kind_has_email",
        ),
    )
    op.create_index("uq_users_email", "users", ["email"], unique=True)
    # Full users never resolve by device, so they stay out of the index
    op.create_index(
        "uq_users_device_id_anchored",
        "users",
        ["device_id"],
        unique=True,
        postgresql_where=sa.text("kind IN ('guest', 'claimed')"),
    )

    # =========================================================================
    # verification_tokens
    # =========================================================================
    op.create_table(
        "verification_tokens",
        _id_column(),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "bound_user_id",
            UUID(as_uuid=True),
            sa.ForeignKey(_USERS_ID, ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("used", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_verification_tokens_email", "verification_tokens", ["email"]
    )
    op.create_index(
        "idx_verification_tokens_expires_at", "verification_tokens", ["expires_at"]
    )

    # =========================================================================
    # Ledger tables
    # =========================================================================
    op.create_table(
        "groups",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "created_by_id",
            UUID(as_uuid=True),
            sa.ForeignKey(_USERS_ID),
            nullable=False,
        ),
        *_timestamp_columns(),
    )

    op.create_table(
        "group_members",
        _id_column(),
        sa.Column(
            "group_id",
            UUID(as_uuid=True),
            sa.ForeignKey(_GROUPS_ID, ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey(_USERS_ID), nullable=False
        ),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "group_id", "user_id", name="uq_group_members_group_user"
        ),
    )

    op.create_table(
        "expenses",
        _id_column(),
        sa.Column(
            "group_id",
            UUID(as_uuid=True),
            sa.ForeignKey(_GROUPS_ID, ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column(
            "paid_by_id", UUID(as_uuid=True), sa.ForeignKey(_USERS_ID), nullable=False
        ),
        sa.Column(
            "created_by_id",
            UUID(as_uuid=True),
            sa.ForeignKey(_USERS_ID),
            nullable=False,
        ),
        *_timestamp_columns(),
    )
    op.create_index("idx_expenses_group_id", "expenses", ["group_id"])
    op.create_index("idx_expenses_paid_by_id", "expenses", ["paid_by_id"])

    op.create_table(
        "expense_splits",
        _id_column(),
        sa.Column(
            "expense_id",
            UUID(as_uuid=True),
            sa.ForeignKey("expenses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id", UUID(as_uuid=True), sa.ForeignKey(_USERS_ID), nullable=False
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.UniqueConstraint(
            "expense_id", "user_id", name="uq_expense_splits_expense_user"
        ),
    )
    op.create_index("idx_expense_splits_user_id", "expense_splits", ["user_id"])

    op.create_table(
        "settlements",
        _id_column(),
        sa.Column(
            "group_id",
            UUID(as_uuid=True),
            sa.ForeignKey(_GROUPS_ID, ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "from_user_id",
            UUID(as_uuid=True),
            sa.ForeignKey(_USERS_ID),
            nullable=False,
        ),
        sa.Column(
            "to_user_id", UUID(as_uuid=True), sa.ForeignKey(_USERS_ID), nullable=False
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column(
            "settled_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("idx_settlements_from_user_id", "settlements", ["from_user_id"])
    op.create_index("idx_settlements_to_user_id", "settlements", ["to_user_id"])


def downgrade() -> None:
    op.drop_table("settlements")
    op.drop_table("expense_splits")
    op.drop_table("expenses")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("verification_tokens")
    op.drop_table("users")
