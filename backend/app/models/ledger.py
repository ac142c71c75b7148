"""Ledger models - groups, expenses, splits, settlements.

Only the columns that tie ledger rows to users are modeled here. The
group/expense/settlement CRUD services own everything else. Every user
reference is a plain foreign key to users.id, so promoting a guest to a
claimed identity never touches these rows.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

_USERS_ID = "users.id"
_GROUPS_ID = "groups.id"


class Group(Base, TimestampMixin):
    """Expense-sharing group.

    Attributes:
        id: UUID primary key.
        name: Group name.
        created_by_id: FK to the user who created the group.
    """

    __tablename__ = "groups"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey(_USERS_ID), nullable=False
    )


class GroupMember(Base):
    """Membership of a user in a group.

    Attributes:
        id: UUID primary key.
        group_id: FK to groups.
        user_id: FK to users.
        joined_at: When the user joined.
    """

    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey(_GROUPS_ID, ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey(_USERS_ID), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Expense(Base, TimestampMixin):
    """An expense paid by one member of a group.

    Attributes:
        id: UUID primary key.
        group_id: FK to groups.
        amount: Total amount (Numeric 12,2).
        currency: ISO 4217 code.
        description: Short description.
        paid_by_id: FK to the user who paid.
        created_by_id: FK to the user who recorded the expense.
    """

    __tablename__ = "expenses"
    __table_args__ = (
        Index("idx_expenses_group_id", "group_id"),
        Index("idx_expenses_paid_by_id", "paid_by_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey(_GROUPS_ID, ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    paid_by_id: Mapped[uuid.UUID] = mapped_column(ForeignKey(_USERS_ID), nullable=False)
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey(_USERS_ID), nullable=False
    )


class ExpenseSplit(Base):
    """A user's share of an expense.

    Attributes:
        id: UUID primary key.
        expense_id: FK to expenses.
        user_id: FK to the user who owes this share.
        amount: Share amount (Numeric 12,2).
    """

    __tablename__ = "expense_splits"
    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_splits_expense_user"),
        Index("idx_expense_splits_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    expense_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey(_USERS_ID), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)


class Settlement(Base):
    """A payment from one member to another that settles a balance.

    Attributes:
        id: UUID primary key.
        group_id: FK to groups.
        from_user_id: FK to the paying user.
        to_user_id: FK to the receiving user.
        amount: Settled amount (Numeric 12,2).
        currency: ISO 4217 code.
        settled_at: When the settlement was recorded.
    """

    __tablename__ = "settlements"
    __table_args__ = (
        Index("idx_settlements_from_user_id", "from_user_id"),
        Index("idx_settlements_to_user_id", "to_user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey(_GROUPS_ID, ondelete="CASCADE"), nullable=False
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey(_USERS_ID), nullable=False
    )
    to_user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey(_USERS_ID), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
