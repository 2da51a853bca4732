"""Fiscal year and accounting period schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ledger_integrity.models import PeriodLockAction, PeriodStatus, PeriodType
from ledger_integrity.schemas.base import BaseResponse


class FiscalYearCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode="after")
    def validate_dates(self) -> "FiscalYearCreate":
        if self.end_date < self.start_date:
            raise ValueError("Fiscal year end date must be after start date")
        return self


class FiscalYearResponse(BaseResponse):
    id: UUID
    name: str
    start_date: date
    end_date: date
    status: PeriodStatus
    is_current: bool
    is_year_end_closed: bool
    year_end_closing_date: date | None = None
    year_end_closing_journal_id: UUID | None = None


class AccountingPeriodResponse(BaseResponse):
    id: UUID
    fiscal_year_id: UUID
    period_number: int
    name: str
    period_type: PeriodType
    start_date: date
    end_date: date
    status: PeriodStatus
    closed_by: str | None = None
    closing_notes: str | None = None
    locked_by: str | None = None


class PeriodCloseRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class PeriodReopenRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class PeriodLockAuditResponse(BaseResponse):
    id: UUID
    period_id: UUID
    fiscal_year_id: UUID
    action: PeriodLockAction
    previous_status: PeriodStatus
    new_status: PeriodStatus
    action_by: str
    action_date: datetime
    reason: str | None = None
