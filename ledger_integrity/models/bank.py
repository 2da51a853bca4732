"""Bank statement transaction model used as the reconciliation source."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import DECIMAL, Boolean, Date, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_integrity.database import Base
from ledger_integrity.models.base import TimestampMixin, UUIDMixin


class BankTransaction(Base, UUIDMixin, TimestampMixin):
    """A single line imported from a bank statement.

    debit_amount is money leaving the account, credit_amount money arriving.
    """

    __tablename__ = "bank_transactions"

    bank_account_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cheque_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    debit_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), nullable=False, default=Decimal("0.00")
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), nullable=False, default=Decimal("0.00")
    )
    is_reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    reconciled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def amount(self) -> Decimal:
        """Absolute movement used for matching."""
        return self.credit_amount if self.credit_amount else self.debit_amount
