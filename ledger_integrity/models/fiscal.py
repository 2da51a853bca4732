"""Fiscal year, accounting period and period lock audit models."""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_integrity.database import Base
from ledger_integrity.models.base import TimestampMixin, UUIDMixin, enum_type


class PeriodStatus(str, enum.Enum):
    """Status shared by fiscal years and accounting periods.

    OPEN -> CLOSED -> LOCKED, with CLOSED -> OPEN allowed as a reopen.
    """

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    LOCKED = "LOCKED"


class PeriodType(str, enum.Enum):
    MONTH = "MONTH"
    QUARTER = "QUARTER"
    YEAR = "YEAR"


class PeriodLockAction(str, enum.Enum):
    CLOSE = "CLOSE"
    LOCK = "LOCK"
    REOPEN = "REOPEN"


class FiscalYear(Base, UUIDMixin, TimestampMixin):
    """A financial year partitioned into accounting periods."""

    __tablename__ = "fiscal_years"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[PeriodStatus] = mapped_column(
        enum_type(PeriodStatus, "fiscal_year_status_enum"),
        nullable=False,
        default=PeriodStatus.OPEN,
    )
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_year_end_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    year_end_closing_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    year_end_closing_journal_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    periods: Mapped[list[AccountingPeriod]] = relationship(
        "AccountingPeriod",
        back_populates="fiscal_year",
        cascade="all, delete-orphan",
        order_by="AccountingPeriod.period_number",
    )

    def contains(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date


class AccountingPeriod(Base, UUIDMixin, TimestampMixin):
    """A period (usually a month) within a fiscal year."""

    __tablename__ = "accounting_periods"

    fiscal_year_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("fiscal_years.id", ondelete="CASCADE"), nullable=False, index=True
    )
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    period_type: Mapped[PeriodType] = mapped_column(
        enum_type(PeriodType, "period_type_enum"), nullable=False, default=PeriodType.MONTH
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[PeriodStatus] = mapped_column(
        enum_type(PeriodStatus, "period_status_enum"),
        nullable=False,
        default=PeriodStatus.OPEN,
    )

    closed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    closing_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    locked_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    fiscal_year: Mapped[FiscalYear] = relationship("FiscalYear", back_populates="periods")


class PeriodLockAudit(Base, UUIDMixin):
    """Append-only record of every period status transition."""

    __tablename__ = "period_lock_audit"

    period_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    fiscal_year_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    action: Mapped[PeriodLockAction] = mapped_column(
        enum_type(PeriodLockAction, "period_lock_action_enum"), nullable=False
    )
    previous_status: Mapped[PeriodStatus] = mapped_column(
        enum_type(PeriodStatus, "period_audit_previous_status_enum"), nullable=False
    )
    new_status: Mapped[PeriodStatus] = mapped_column(
        enum_type(PeriodStatus, "period_audit_new_status_enum"), nullable=False
    )
    action_by: Mapped[str] = mapped_column(String(100), nullable=False)
    action_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
