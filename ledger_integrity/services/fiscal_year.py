"""Fiscal year and accounting period lifecycle, and the period check for writes."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.config import settings
from ledger_integrity.database import atomic
from ledger_integrity.logger import get_logger, log_exception
from ledger_integrity.models import (
    Account,
    AccountingPeriod,
    AccountType,
    FiscalYear,
    PeriodLockAction,
    PeriodLockAudit,
    PeriodStatus,
    PeriodType,
)
from ledger_integrity.schemas.year_end import ClosedAccountBalance, YearEndBalances
from ledger_integrity.services.errors import (
    ClosedPeriodError,
    FiscalYearError,
    PeriodNotFoundError,
    PeriodResolutionError,
    PeriodTransitionError,
)
from ledger_integrity.services.ledger_validator import round_money

logger = get_logger(__name__)

_BLOCKING_STATUSES = frozenset({PeriodStatus.CLOSED, PeriodStatus.LOCKED})


@dataclass(frozen=True)
class PeriodResolution:
    """Fiscal year (and period, when one is defined) covering a date."""

    fiscal_year: FiscalYear
    period: AccountingPeriod | None

    @property
    def blocking(self) -> tuple[str, PeriodStatus] | None:
        """Name and status of whichever of year/period refuses writes, if any."""
        if self.fiscal_year.status in _BLOCKING_STATUSES:
            return self.fiscal_year.name, self.fiscal_year.status
        if self.period is not None and self.period.status in _BLOCKING_STATUSES:
            return self.period.name, self.period.status
        return None


# =============================================================================
# Lookups
# =============================================================================


async def get_fiscal_year(db: AsyncSession, fiscal_year_id: UUID) -> FiscalYear | None:
    return await db.get(FiscalYear, fiscal_year_id)


async def get_current_fiscal_year(db: AsyncSession) -> FiscalYear | None:
    """Fiscal year flagged as current, else the one containing today."""
    result = await db.execute(select(FiscalYear).where(FiscalYear.is_current.is_(True)).limit(1))
    fiscal_year = result.scalar_one_or_none()
    if fiscal_year is not None:
        return fiscal_year

    today = date.today()
    result = await db.execute(
        select(FiscalYear)
        .where(FiscalYear.start_date <= today, FiscalYear.end_date >= today)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_accounting_periods(db: AsyncSession, fiscal_year_id: UUID) -> list[AccountingPeriod]:
    result = await db.execute(
        select(AccountingPeriod)
        .where(AccountingPeriod.fiscal_year_id == fiscal_year_id)
        .order_by(AccountingPeriod.period_number)
    )
    return list(result.scalars().all())


async def resolve_period(db: AsyncSession, on_date: date) -> PeriodResolution | None:
    """Find the fiscal year and accounting period containing on_date."""
    result = await db.execute(
        select(FiscalYear)
        .where(FiscalYear.start_date <= on_date, FiscalYear.end_date >= on_date)
        .order_by(FiscalYear.start_date)
        .limit(1)
    )
    fiscal_year = result.scalar_one_or_none()
    if fiscal_year is None:
        return None

    result = await db.execute(
        select(AccountingPeriod)
        .where(
            AccountingPeriod.fiscal_year_id == fiscal_year.id,
            AccountingPeriod.start_date <= on_date,
            AccountingPeriod.end_date >= on_date,
        )
        .order_by(AccountingPeriod.period_number)
        .limit(1)
    )
    return PeriodResolution(fiscal_year=fiscal_year, period=result.scalar_one_or_none())


# =============================================================================
# Period check for writes
# =============================================================================


async def check_transaction_period(db: AsyncSession, on_date: date) -> PeriodResolution | None:
    """Refuse writes dated inside a CLOSED or LOCKED year or period.

    No fiscal year or period configured for the date: the write is allowed and
    a warning is logged. A failing lookup is governed by
    settings.allow_writes_when_period_unresolved.
    """
    try:
        resolution = await resolve_period(db, on_date)
    except SQLAlchemyError as e:
        if settings.allow_writes_when_period_unresolved:
            log_exception(
                logger,
                e,
                "Fiscal period lookup failed - allowing write",
                level="warning",
                include_traceback=False,
                transaction_date=on_date.isoformat(),
            )
            return None
        log_exception(
            logger, e, "Fiscal period lookup failed", transaction_date=on_date.isoformat()
        )
        raise PeriodResolutionError(
            f"Unable to verify the accounting period for {on_date.isoformat()}"
        ) from e

    if resolution is None:
        logger.warning(
            "No fiscal year configured for transaction date - allowing write",
            transaction_date=on_date.isoformat(),
        )
        return None

    blocking = resolution.blocking
    if blocking is not None:
        name, status = blocking
        logger.info(
            "Write refused for closed period",
            transaction_date=on_date.isoformat(),
            period=name,
            status=status.value,
        )
        raise ClosedPeriodError(on_date, name, status.value)

    if resolution.period is None:
        logger.warning(
            "No accounting period found for transaction date - allowing write",
            transaction_date=on_date.isoformat(),
            fiscal_year=resolution.fiscal_year.name,
        )
    return resolution


async def is_period_open(db: AsyncSession, on_date: date) -> bool:
    """True when a write dated on_date would pass the period check."""
    try:
        await check_transaction_period(db, on_date)
    except ClosedPeriodError:
        return False
    return True


# =============================================================================
# Fiscal year setup
# =============================================================================


def _monthly_ranges(start: date, end: date) -> list[tuple[date, date]]:
    ranges: list[tuple[date, date]] = []
    cursor = start
    while cursor <= end:
        last_day = calendar.monthrange(cursor.year, cursor.month)[1]
        period_end = min(date(cursor.year, cursor.month, last_day), end)
        ranges.append((cursor, period_end))
        if cursor.month == 12:
            cursor = date(cursor.year + 1, 1, 1)
        else:
            cursor = date(cursor.year, cursor.month + 1, 1)
    return ranges


async def create_fiscal_year(
    db: AsyncSession,
    name: str,
    start_date: date,
    end_date: date,
    *,
    user_id: str,
    is_current: bool = False,
    monthly_periods: bool = True,
) -> FiscalYear:
    """Create a fiscal year and its accounting periods.

    With monthly_periods one MONTH period is generated per calendar month,
    the last one clipped to end_date; otherwise a single YEAR period covers
    the whole range.
    """
    if end_date < start_date:
        raise FiscalYearError("Fiscal year end date must be after start date")

    result = await db.execute(
        select(FiscalYear).where(
            FiscalYear.start_date <= end_date, FiscalYear.end_date >= start_date
        )
    )
    overlapping = result.scalars().first()
    if overlapping is not None:
        raise FiscalYearError(f"Fiscal year overlaps existing fiscal year {overlapping.name}")

    fiscal_year = FiscalYear(
        id=uuid4(),
        name=name,
        start_date=start_date,
        end_date=end_date,
        status=PeriodStatus.OPEN,
        is_current=is_current,
        created_by=user_id,
    )
    if monthly_periods:
        ranges = _monthly_ranges(start_date, end_date)
        period_type = PeriodType.MONTH
    else:
        ranges = [(start_date, end_date)]
        period_type = PeriodType.YEAR

    periods = [
        AccountingPeriod(
            fiscal_year_id=fiscal_year.id,
            period_number=number,
            name=period_start.strftime("%b %Y") if monthly_periods else name,
            period_type=period_type,
            start_date=period_start,
            end_date=period_end,
            status=PeriodStatus.OPEN,
        )
        for number, (period_start, period_end) in enumerate(ranges, start=1)
    ]

    async with atomic(db):
        if is_current:
            await db.execute(update(FiscalYear).values(is_current=False))
        db.add(fiscal_year)
        await db.flush()
        db.add_all(periods)

    logger.info(
        "Fiscal year created",
        fiscal_year_id=str(fiscal_year.id),
        name=name,
        period_count=len(periods),
        user_id=user_id,
    )
    return fiscal_year


# =============================================================================
# Period transitions
# =============================================================================


def _check_transition(action: PeriodLockAction, current: PeriodStatus) -> PeriodStatus:
    """Return the target status, or raise if current does not allow action."""
    if action is PeriodLockAction.CLOSE:
        if current is not PeriodStatus.OPEN:
            raise PeriodTransitionError(
                f"Period cannot be closed: current status is {current.value}"
            )
        return PeriodStatus.CLOSED
    if action is PeriodLockAction.LOCK:
        if current is not PeriodStatus.CLOSED:
            raise PeriodTransitionError(
                "Only closed periods can be locked. Please close the period first."
            )
        return PeriodStatus.LOCKED
    if current is PeriodStatus.LOCKED:
        raise PeriodTransitionError(
            "Cannot reopen a locked period. Please contact system administrator."
        )
    if current is not PeriodStatus.CLOSED:
        raise PeriodTransitionError("Only closed periods can be reopened")
    return PeriodStatus.OPEN


async def _transition_period(
    db: AsyncSession,
    period_id: UUID,
    action: PeriodLockAction,
    *,
    user_id: str,
    reason: str | None = None,
) -> AccountingPeriod:
    period = await db.get(AccountingPeriod, period_id)
    if period is None:
        raise PeriodNotFoundError("Accounting period not found")

    previous = period.status
    target = _check_transition(action, previous)
    now = datetime.now(UTC)

    async with atomic(db):
        period.status = target
        if action is PeriodLockAction.CLOSE:
            period.closed_date = now
            period.closed_by = user_id
            period.closing_notes = reason
        elif action is PeriodLockAction.LOCK:
            period.locked_date = now
            period.locked_by = user_id
        else:
            period.closed_date = None
            period.closed_by = None

        db.add(
            PeriodLockAudit(
                period_id=period.id,
                fiscal_year_id=period.fiscal_year_id,
                action=action,
                previous_status=previous,
                new_status=target,
                action_by=user_id,
                action_date=now,
                reason=reason,
            )
        )

    logger.info(
        "Accounting period status changed",
        period_id=str(period.id),
        period=period.name,
        action=action.value,
        previous_status=previous.value,
        new_status=target.value,
        user_id=user_id,
    )
    return period


async def close_period(
    db: AsyncSession, period_id: UUID, *, user_id: str, notes: str | None = None
) -> AccountingPeriod:
    return await _transition_period(
        db, period_id, PeriodLockAction.CLOSE, user_id=user_id, reason=notes
    )


async def lock_period(
    db: AsyncSession, period_id: UUID, *, user_id: str, reason: str | None = None
) -> AccountingPeriod:
    return await _transition_period(
        db, period_id, PeriodLockAction.LOCK, user_id=user_id, reason=reason
    )


async def reopen_period(
    db: AsyncSession, period_id: UUID, *, user_id: str, reason: str
) -> AccountingPeriod:
    return await _transition_period(
        db, period_id, PeriodLockAction.REOPEN, user_id=user_id, reason=reason
    )


async def get_period_lock_audit(db: AsyncSession, period_id: UUID) -> list[PeriodLockAudit]:
    result = await db.execute(
        select(PeriodLockAudit)
        .where(PeriodLockAudit.period_id == period_id)
        .order_by(PeriodLockAudit.action_date.desc())
    )
    return list(result.scalars().all())


# =============================================================================
# Year-end balances
# =============================================================================


def _closed_balance(account: Account) -> ClosedAccountBalance:
    return ClosedAccountBalance(
        account_id=str(account.id),
        account_code=account.code,
        account_name=account.name,
        account_type=account.account_type,
        closing_balance=round_money(account.current_balance),
    )


async def calculate_year_end_balances(db: AsyncSession) -> YearEndBalances:
    """Non-zero income and expense balances with totals and net income."""
    result = await db.execute(
        select(Account)
        .where(Account.account_type.in_([AccountType.INCOME, AccountType.EXPENSE]))
        .order_by(Account.code)
    )
    revenue: list[ClosedAccountBalance] = []
    expense: list[ClosedAccountBalance] = []
    for account in result.scalars().all():
        if round_money(account.current_balance) == 0:
            continue
        target = revenue if account.account_type is AccountType.INCOME else expense
        target.append(_closed_balance(account))

    total_revenue = round_money(sum((a.closing_balance for a in revenue), Decimal("0")))
    total_expenses = round_money(sum((a.closing_balance for a in expense), Decimal("0")))
    balances = YearEndBalances(
        revenue_accounts=revenue,
        expense_accounts=expense,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_income=total_revenue - total_expenses,
    )

    logger.info(
        "Calculated year-end balances",
        revenue_account_count=len(revenue),
        expense_account_count=len(expense),
        total_revenue=str(total_revenue),
        total_expenses=str(total_expenses),
        net_income=str(balances.net_income),
    )
    return balances
