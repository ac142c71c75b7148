"""SQLAlchemy ORM models for the EVN API.

All models are exported from this module for convenient imports:
    from app.models import User, VerificationToken, Expense, ...

Models are organized by domain:
- user.py: User (Tier 0 - identity)
- verification_token.py: VerificationToken (Tier 1 - magic links)
- ledger.py: Group, GroupMember, Expense, ExpenseSplit, Settlement
  (Tier 1+ - owned data, referenced by user id only)
"""

from app.models.base import Base, TimestampMixin
from app.models.ledger import Expense, ExpenseSplit, Group, GroupMember, Settlement
from app.models.user import User
from app.models.verification_token import VerificationToken

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Tier 0
    "User",
    # Tier 1 - Auth
    "VerificationToken",
    # Tier 1+ - Ledger
    "Group",
    "GroupMember",
    "Expense",
    "ExpenseSplit",
    "Settlement",
]
