"""Year-end closing entry model."""

from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import DECIMAL, Date, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ledger_integrity.database import Base
from ledger_integrity.models.base import JSONType, TimestampMixin, UUIDMixin, enum_type


class ClosingStatus(str, enum.Enum):
    POSTED = "POSTED"
    REVERSED = "REVERSED"


class YearEndClosingEntry(Base, UUIDMixin, TimestampMixin):
    """
    Record of a year-end close.

    revenue_accounts / expense_accounts keep the balances that were zeroed so a
    reversal can restore them exactly.
    """

    __tablename__ = "year_end_closing_entries"

    fiscal_year_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("fiscal_years.id"), nullable=False, index=True
    )
    fiscal_year_name: Mapped[str] = mapped_column(String(50), nullable=False)
    closing_date: Mapped[date] = mapped_column(Date, nullable=False)

    retained_earnings_account_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    retained_earnings_account_code: Mapped[str] = mapped_column(String(50), nullable=False)

    revenue_accounts: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    expense_accounts: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    total_revenue: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False)
    total_expenses: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False)
    net_income: Mapped[Decimal] = mapped_column(DECIMAL(18, 2), nullable=False)

    journal_entry_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    journal_entry_number: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[ClosingStatus] = mapped_column(
        enum_type(ClosingStatus, "closing_status_enum"),
        nullable=False,
        default=ClosingStatus.POSTED,
    )
    reversal_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reversal_journal_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
