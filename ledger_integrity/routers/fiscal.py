"""Fiscal year and accounting period API router."""

from uuid import UUID

from fastapi import APIRouter, status
from sqlalchemy import select

from ledger_integrity.deps import CurrentUser, DbSession
from ledger_integrity.models import FiscalYear, User
from ledger_integrity.schemas import (
    AccountingPeriodResponse,
    FiscalYearCreate,
    FiscalYearResponse,
    PeriodCloseRequest,
    PeriodLockAuditResponse,
    PeriodReopenRequest,
)
from ledger_integrity.services.authorization import PermissionFlag, require_permission
from ledger_integrity.services.errors import LedgerError
from ledger_integrity.services.fiscal_year import (
    close_period,
    create_fiscal_year,
    get_accounting_periods,
    get_current_fiscal_year,
    get_fiscal_year,
    get_period_lock_audit,
    lock_period,
    reopen_period,
)
from ledger_integrity.utils.exceptions import (
    raise_bad_request,
    raise_for_ledger_error,
    raise_not_found,
)

router = APIRouter(prefix="/fiscal-years", tags=["fiscal-years"])


def _require_manage(user: User, operation: str) -> None:
    require_permission(user.permissions, PermissionFlag.MANAGE_ACCOUNTING, str(user.id), operation)


@router.post("", response_model=FiscalYearResponse, status_code=status.HTTP_201_CREATED)
async def create(
    data: FiscalYearCreate,
    db: DbSession,
    user: CurrentUser,
    monthly_periods: bool = True,
) -> FiscalYearResponse:
    """Create a fiscal year with monthly (or a single yearly) accounting period(s)."""
    try:
        _require_manage(user, "create fiscal years")
        fiscal_year = await create_fiscal_year(
            db,
            data.name,
            data.start_date,
            data.end_date,
            user_id=str(user.id),
            is_current=data.is_current,
            monthly_periods=monthly_periods,
        )
    except LedgerError as e:
        raise_for_ledger_error(e)
    return FiscalYearResponse.model_validate(fiscal_year)


@router.get("", response_model=list[FiscalYearResponse])
async def list_fiscal_years(db: DbSession, user: CurrentUser) -> list[FiscalYearResponse]:
    result = await db.execute(select(FiscalYear).order_by(FiscalYear.start_date.desc()))
    return [FiscalYearResponse.model_validate(fy) for fy in result.scalars().all()]


@router.get("/current", response_model=FiscalYearResponse)
async def current(db: DbSession, user: CurrentUser) -> FiscalYearResponse:
    fiscal_year = await get_current_fiscal_year(db)
    if fiscal_year is None:
        raise_not_found("Current fiscal year")
    return FiscalYearResponse.model_validate(fiscal_year)


@router.get("/{fiscal_year_id}/periods", response_model=list[AccountingPeriodResponse])
async def list_periods(
    fiscal_year_id: UUID, db: DbSession, user: CurrentUser
) -> list[AccountingPeriodResponse]:
    if await get_fiscal_year(db, fiscal_year_id) is None:
        raise_not_found("Fiscal year")
    periods = await get_accounting_periods(db, fiscal_year_id)
    return [AccountingPeriodResponse.model_validate(p) for p in periods]


@router.post("/periods/{period_id}/close", response_model=AccountingPeriodResponse)
async def close(
    period_id: UUID, request: PeriodCloseRequest, db: DbSession, user: CurrentUser
) -> AccountingPeriodResponse:
    try:
        _require_manage(user, "close accounting periods")
        period = await close_period(db, period_id, user_id=str(user.id), notes=request.notes)
    except LedgerError as e:
        raise_for_ledger_error(e)
    return AccountingPeriodResponse.model_validate(period)


@router.post("/periods/{period_id}/lock", response_model=AccountingPeriodResponse)
async def lock(
    period_id: UUID, request: PeriodCloseRequest, db: DbSession, user: CurrentUser
) -> AccountingPeriodResponse:
    """Lock a closed period. Locked periods cannot be reopened."""
    try:
        _require_manage(user, "lock accounting periods")
        period = await lock_period(db, period_id, user_id=str(user.id), reason=request.notes)
    except LedgerError as e:
        raise_for_ledger_error(e)
    return AccountingPeriodResponse.model_validate(period)


@router.post("/periods/{period_id}/reopen", response_model=AccountingPeriodResponse)
async def reopen(
    period_id: UUID, request: PeriodReopenRequest, db: DbSession, user: CurrentUser
) -> AccountingPeriodResponse:
    if not request.reason.strip():
        raise_bad_request("Reopen reason is required")
    try:
        _require_manage(user, "reopen accounting periods")
        period = await reopen_period(db, period_id, user_id=str(user.id), reason=request.reason)
    except LedgerError as e:
        raise_for_ledger_error(e)
    return AccountingPeriodResponse.model_validate(period)


@router.get("/periods/{period_id}/audit", response_model=list[PeriodLockAuditResponse])
async def period_audit(
    period_id: UUID, db: DbSession, user: CurrentUser
) -> list[PeriodLockAuditResponse]:
    rows = await get_period_lock_audit(db, period_id)
    return [PeriodLockAuditResponse.model_validate(row) for row in rows]
