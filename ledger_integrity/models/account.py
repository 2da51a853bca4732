"""Account model for double-entry bookkeeping."""

from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import DECIMAL, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_integrity.database import Base
from ledger_integrity.models.base import TimestampMixin, UUIDMixin, enum_type


class AccountType(str, enum.Enum):
    """Account type classification."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


class Account(Base, UUIDMixin, TimestampMixin):
    """
    Account represents a ledger account in the chart of accounts.

    current_balance is kept on the account's natural side: debit-normal accounts
    (assets, expenses) grow with debits, the others grow with credits.
    """

    __tablename__ = "accounts"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        enum_type(AccountType, "account_type_enum"), nullable=False, index=True
    )
    # Free-form sub-classification, e.g. RETAINED_EARNINGS, BANK, RECEIVABLES
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    current_balance: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), nullable=False, default=Decimal("0.00")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type in DEBIT_NORMAL_TYPES

    def __repr__(self) -> str:
        return f"<Account {self.code} {self.name} ({self.account_type.value})>"
