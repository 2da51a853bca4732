"""Tests for fiscal year setup, period transitions and year-end balances."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_integrity.models import (
    AccountType,
    PeriodLockAction,
    PeriodStatus,
    PeriodType,
)
from ledger_integrity.services.errors import (
    FiscalYearError,
    PeriodNotFoundError,
    PeriodTransitionError,
)
from ledger_integrity.services.fiscal_year import (
    calculate_year_end_balances,
    close_period,
    create_fiscal_year,
    get_accounting_periods,
    get_current_fiscal_year,
    get_period_lock_audit,
    is_period_open,
    lock_period,
    reopen_period,
    resolve_period,
)
from tests.factories import AccountFactory, AccountingPeriodFactory, FiscalYearFactory


class TestCreateFiscalYear:
    @pytest.mark.asyncio
    async def test_monthly_periods_cover_the_year(self, db):
        fiscal_year = await create_fiscal_year(
            db, "FY 2024-25", date(2024, 4, 1), date(2025, 3, 31), user_id="user-1"
        )

        periods = await get_accounting_periods(db, fiscal_year.id)
        assert len(periods) == 12
        assert periods[0].name == "Apr 2024"
        assert periods[0].start_date == date(2024, 4, 1)
        assert periods[0].end_date == date(2024, 4, 30)
        assert periods[10].end_date == date(2025, 2, 28)
        assert periods[-1].name == "Mar 2025"
        assert all(p.period_type is PeriodType.MONTH for p in periods)
        assert all(p.status is PeriodStatus.OPEN for p in periods)

    @pytest.mark.asyncio
    async def test_last_month_is_clipped_to_end_date(self, db):
        fiscal_year = await create_fiscal_year(
            db, "Short year", date(2024, 1, 1), date(2024, 2, 10), user_id="user-1"
        )

        periods = await get_accounting_periods(db, fiscal_year.id)
        assert [(p.start_date, p.end_date) for p in periods] == [
            (date(2024, 1, 1), date(2024, 1, 31)),
            (date(2024, 2, 1), date(2024, 2, 10)),
        ]

    @pytest.mark.asyncio
    async def test_single_year_period(self, db):
        fiscal_year = await create_fiscal_year(
            db,
            "FY 2024",
            date(2024, 1, 1),
            date(2024, 12, 31),
            user_id="user-1",
            monthly_periods=False,
        )

        (period,) = await get_accounting_periods(db, fiscal_year.id)
        assert period.period_type is PeriodType.YEAR
        assert period.name == "FY 2024"

    @pytest.mark.asyncio
    async def test_end_before_start_is_refused(self, db):
        with pytest.raises(FiscalYearError, match="end date must be after start date"):
            await create_fiscal_year(
                db, "Backwards", date(2024, 12, 31), date(2024, 1, 1), user_id="user-1"
            )

    @pytest.mark.asyncio
    async def test_overlap_is_refused(self, db):
        await FiscalYearFactory.create_async(db)
        await db.commit()

        with pytest.raises(FiscalYearError) as exc_info:
            await create_fiscal_year(
                db, "FY 2024-25", date(2024, 7, 1), date(2025, 6, 30), user_id="user-1"
            )

        assert str(exc_info.value) == "Fiscal year overlaps existing fiscal year FY 2024"

    @pytest.mark.asyncio
    async def test_current_flag_moves_to_new_year(self, db):
        previous = await FiscalYearFactory.create_async(db, is_current=True)
        await db.commit()

        created = await create_fiscal_year(
            db,
            "FY 2025",
            date(2025, 1, 1),
            date(2025, 12, 31),
            user_id="user-1",
            is_current=True,
        )

        await db.refresh(previous)
        assert previous.is_current is False
        current = await get_current_fiscal_year(db)
        assert current.id == created.id


class TestResolvePeriod:
    @pytest.mark.asyncio
    async def test_resolves_year_and_period(self, db):
        fiscal_year, periods = await FiscalYearFactory.create_with_periods_async(db)
        await db.commit()

        resolution = await resolve_period(db, date(2024, 5, 20))

        assert resolution.fiscal_year.id == fiscal_year.id
        assert resolution.period.id == periods[1].id
        assert resolution.blocking is None

    @pytest.mark.asyncio
    async def test_date_outside_any_year(self, db):
        await FiscalYearFactory.create_async(db)
        await db.commit()

        assert await resolve_period(db, date(2023, 12, 31)) is None

    @pytest.mark.asyncio
    async def test_is_period_open(self, db):
        _, periods = await FiscalYearFactory.create_with_periods_async(db)
        periods[0].status = PeriodStatus.CLOSED
        await db.commit()

        assert await is_period_open(db, date(2024, 2, 1)) is False
        assert await is_period_open(db, date(2024, 4, 1)) is True
        assert await is_period_open(db, date(2030, 1, 1)) is True


class TestPeriodTransitions:
    @pytest.mark.asyncio
    async def test_close_lock_records_audit(self, db):
        _, periods = await FiscalYearFactory.create_with_periods_async(db)
        await db.commit()
        period = periods[0]

        closed = await close_period(db, period.id, user_id="user-1", notes="Q1 done")
        assert closed.status is PeriodStatus.CLOSED
        assert closed.closed_by == "user-1"
        assert closed.closing_notes == "Q1 done"

        locked = await lock_period(db, period.id, user_id="user-2")
        assert locked.status is PeriodStatus.LOCKED
        assert locked.locked_by == "user-2"

        audit = await get_period_lock_audit(db, period.id)
        assert [row.action for row in audit] == [PeriodLockAction.LOCK, PeriodLockAction.CLOSE]
        assert audit[1].previous_status is PeriodStatus.OPEN
        assert audit[1].new_status is PeriodStatus.CLOSED
        assert audit[1].reason == "Q1 done"

    @pytest.mark.asyncio
    async def test_reopen_clears_closing_fields(self, db):
        period = await AccountingPeriodFactory.create_async(
            db,
            fiscal_year_id=(await FiscalYearFactory.create_async(db)).id,
            status=PeriodStatus.CLOSED,
            closed_by="user-1",
        )
        await db.commit()

        reopened = await reopen_period(db, period.id, user_id="user-2", reason="Late invoice")

        assert reopened.status is PeriodStatus.OPEN
        assert reopened.closed_by is None
        (row,) = await get_period_lock_audit(db, period.id)
        assert row.action is PeriodLockAction.REOPEN
        assert row.reason == "Late invoice"

    @pytest.mark.parametrize(
        ("status", "operation", "message"),
        [
            (PeriodStatus.CLOSED, "close", "Period cannot be closed: current status is CLOSED"),
            (
                PeriodStatus.OPEN,
                "lock",
                "Only closed periods can be locked. Please close the period first.",
            ),
            (
                PeriodStatus.LOCKED,
                "reopen",
                "Cannot reopen a locked period. Please contact system administrator.",
            ),
            (PeriodStatus.OPEN, "reopen", "Only closed periods can be reopened"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_transitions(self, db, status, operation, message):
        fiscal_year = await FiscalYearFactory.create_async(db)
        period = await AccountingPeriodFactory.create_async(
            db, fiscal_year_id=fiscal_year.id, status=status
        )
        await db.commit()
        transition = {
            "close": lambda: close_period(db, period.id, user_id="user-1"),
            "lock": lambda: lock_period(db, period.id, user_id="user-1"),
            "reopen": lambda: reopen_period(db, period.id, user_id="user-1", reason="why"),
        }[operation]

        with pytest.raises(PeriodTransitionError) as exc_info:
            await transition()

        assert str(exc_info.value) == message
        assert await get_period_lock_audit(db, period.id) == []

    @pytest.mark.asyncio
    async def test_unknown_period(self, db):
        with pytest.raises(PeriodNotFoundError, match="Accounting period not found"):
            await close_period(db, uuid4(), user_id="user-1")


@pytest.mark.asyncio
async def test_year_end_balances_skip_zero_accounts(db):
    await AccountFactory.create_async(
        db, code="4000", account_type=AccountType.INCOME, current_balance=Decimal("5000.00")
    )
    await AccountFactory.create_async(
        db, code="5000", account_type=AccountType.EXPENSE, current_balance=Decimal("3000.00")
    )
    await AccountFactory.create_async(
        db, code="5100", account_type=AccountType.EXPENSE, current_balance=Decimal("0.00")
    )
    await AccountFactory.create_async(db, code="1000", current_balance=Decimal("9999.00"))
    await db.commit()

    balances = await calculate_year_end_balances(db)

    assert [a.account_code for a in balances.revenue_accounts] == ["4000"]
    assert [a.account_code for a in balances.expense_accounts] == ["5000"]
    assert balances.total_revenue == Decimal("5000.00")
    assert balances.total_expenses == Decimal("3000.00")
    assert balances.net_income == Decimal("2000.00")
