"""Pydantic schemas for transactions."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from ledger_integrity.models import JournalType, PaymentStatus, TransactionStatus, TransactionType
from ledger_integrity.schemas.approval import ApprovalRecord
from ledger_integrity.schemas.base import BaseResponse
from ledger_integrity.schemas.ledger import DisplayRow, LedgerEntry, LedgerValidationResult


class TransactionCreate(BaseModel):
    """Input for every save path.

    Entries are not validated here; the transaction service runs the ledger
    validator so that all save paths apply the same rules.
    """

    type: TransactionType
    transaction_date: date
    entries: list[LedgerEntry] = Field(default_factory=list)
    description: Annotated[str | None, Field(max_length=500)] = None
    reference: Annotated[str | None, Field(max_length=100)] = None
    cheque_number: Annotated[str | None, Field(max_length=50)] = None
    vendor_invoice_number: Annotated[str | None, Field(max_length=100)] = None
    entity_id: Annotated[str | None, Field(max_length=100)] = None
    entity_name: Annotated[str | None, Field(max_length=200)] = None
    currency: Annotated[str, Field(min_length=3, max_length=3)] = "INR"
    total_amount: Decimal | None = None
    transaction_number: str | None = None
    status: TransactionStatus = TransactionStatus.DRAFT
    journal_type: JournalType | None = None
    payment_status: PaymentStatus | None = None
    original_journal_id: UUID | None = None


class TransactionResponse(BaseResponse):
    id: UUID
    transaction_number: str
    type: TransactionType
    status: TransactionStatus
    transaction_date: date
    description: str | None = None
    reference: str | None = None
    vendor_invoice_number: str | None = None
    entity_id: str | None = None
    entity_name: str | None = None
    total_amount: Decimal
    currency: str
    entries: list[LedgerEntry]
    journal_type: JournalType | None = None
    approval_history: list[ApprovalRecord]
    submitted_by_id: str | None = None
    assigned_approver_id: str | None = None
    approved_by_id: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    payment_status: PaymentStatus | None = None
    void_reason: str | None = None
    is_reversed: bool
    reversal_journal_id: UUID | None = None
    created_at: datetime


class ValidateEntriesRequest(BaseModel):
    entries: list[LedgerEntry]


class ValidateEntriesResponse(LedgerValidationResult):
    rows: list[DisplayRow]


class SubmitForApprovalRequest(BaseModel):
    approver_id: str
    approver_name: str
    comments: str | None = None


class ApprovalDecisionRequest(BaseModel):
    comments: str | None = None


class VoidTransactionRequest(BaseModel):
    reason: Annotated[str, Field(min_length=1, max_length=500)]
