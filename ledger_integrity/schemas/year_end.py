"""Year-end closing schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from ledger_integrity.models import AccountType, ClosingStatus
from ledger_integrity.schemas.base import BaseResponse
from ledger_integrity.schemas.fiscal import AccountingPeriodResponse, FiscalYearResponse
from ledger_integrity.schemas.ledger import LedgerEntry


class ClosedAccountBalance(BaseModel):
    """Balance of an income or expense account at the moment it was closed."""

    account_id: str
    account_code: str
    account_name: str
    account_type: AccountType
    closing_balance: Decimal


class YearEndBalances(BaseModel):
    revenue_accounts: list[ClosedAccountBalance] = Field(default_factory=list)
    expense_accounts: list[ClosedAccountBalance] = Field(default_factory=list)
    total_revenue: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    net_income: Decimal = Decimal("0.00")


class RetainedEarningsAccount(BaseResponse):
    id: UUID
    code: str
    name: str


class ClosingReadiness(BaseModel):
    is_ready: bool
    fiscal_year: FiscalYearResponse | None = None
    open_periods: list[AccountingPeriodResponse] = Field(default_factory=list)
    closed_periods: list[AccountingPeriodResponse] = Field(default_factory=list)
    locked_periods: list[AccountingPeriodResponse] = Field(default_factory=list)
    retained_earnings_account: RetainedEarningsAccount | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ClosingPreview(BaseModel):
    fiscal_year: FiscalYearResponse
    retained_earnings_account: RetainedEarningsAccount
    balances: YearEndBalances
    closing_entries: list[LedgerEntry]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool


class ClosingResult(BaseModel):
    closing_entry_id: UUID
    journal_entry_id: UUID
    journal_entry_number: str
    net_income: Decimal


class ReversalResult(BaseModel):
    closing_entry_id: UUID
    reversal_journal_id: UUID
    reversal_journal_number: str


class ExecuteClosingRequest(BaseModel):
    closing_date: date | None = None


class ReverseClosingRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class YearEndClosingEntryResponse(BaseResponse):
    id: UUID
    fiscal_year_id: UUID
    fiscal_year_name: str
    closing_date: date
    retained_earnings_account_id: UUID
    retained_earnings_account_code: str
    revenue_accounts: list[ClosedAccountBalance]
    expense_accounts: list[ClosedAccountBalance]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    journal_entry_id: UUID
    journal_entry_number: str
    status: ClosingStatus
    reversal_date: date | None = None
    reversal_journal_id: UUID | None = None
    reversal_reason: str | None = None
    created_by: str
    created_at: datetime
