"""Transaction document model: invoices, bills, payments and journal entries."""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import DECIMAL, Boolean, Date, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ledger_integrity.database import Base
from ledger_integrity.models.base import JSONType, TimestampMixin, UUIDMixin, enum_type


class TransactionType(str, enum.Enum):
    """Kind of accounting event."""

    CUSTOMER_INVOICE = "CUSTOMER_INVOICE"
    CUSTOMER_PAYMENT = "CUSTOMER_PAYMENT"
    VENDOR_BILL = "VENDOR_BILL"
    VENDOR_PAYMENT = "VENDOR_PAYMENT"
    JOURNAL_ENTRY = "JOURNAL_ENTRY"


class TransactionStatus(str, enum.Enum):
    """Lifecycle status of a transaction."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    POSTED = "POSTED"
    VOID = "VOID"


class JournalType(str, enum.Enum):
    """Origin of a journal entry."""

    GENERAL = "GENERAL"
    CLOSING = "CLOSING"
    REVERSING = "REVERSING"


class PaymentStatus(str, enum.Enum):
    """Settlement status of an invoice or bill."""

    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class Transaction(Base, UUIDMixin, TimestampMixin):
    """
    Persisted accounting transaction.

    Ledger entries are stored inline as a JSON list and are validated for
    double-entry balance at every write. approval_history is an append-only
    list of approval records; it is always replaced, never mutated in place.
    """

    __tablename__ = "transactions"

    transaction_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    type: Mapped[TransactionType] = mapped_column(
        enum_type(TransactionType, "transaction_type_enum"), nullable=False, index=True
    )
    status: Mapped[TransactionStatus] = mapped_column(
        enum_type(TransactionStatus, "transaction_status_enum"),
        nullable=False,
        default=TransactionStatus.DRAFT,
        index=True,
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cheque_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    vendor_invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    entity_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(18, 2), nullable=False, default=Decimal("0.00")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    entries: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    journal_type: Mapped[JournalType | None] = mapped_column(
        enum_type(JournalType, "journal_type_enum"), nullable=True
    )

    # Approval workflow
    approval_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    submitted_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    submitted_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_approver_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_approver_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    approved_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    payment_status: Mapped[PaymentStatus | None] = mapped_column(
        enum_type(PaymentStatus, "payment_status_enum"), nullable=True
    )
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Void and reversal links
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    voided_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_reversed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reversal_journal_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    original_journal_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} {self.type.value} {self.status.value}>"
