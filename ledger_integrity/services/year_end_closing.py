"""Year-end closing: zero income and expense accounts into Retained Earnings.

Execution and reversal each run as one atomic write through
save_transaction_atomic: the journal, the closing record, the fiscal year
status and every affected account balance commit together or not at all.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.config import settings
from ledger_integrity.logger import async_log_timing, get_logger
from ledger_integrity.models import (
    Account,
    AccountType,
    AuditSeverity,
    ClosingStatus,
    FiscalYear,
    JournalType,
    PeriodStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    YearEndClosingEntry,
)
from ledger_integrity.schemas.fiscal import AccountingPeriodResponse, FiscalYearResponse
from ledger_integrity.schemas.ledger import LedgerEntry
from ledger_integrity.schemas.transaction import TransactionCreate
from ledger_integrity.schemas.year_end import (
    ClosedAccountBalance,
    ClosingPreview,
    ClosingReadiness,
    ClosingResult,
    RetainedEarningsAccount,
    ReversalResult,
)
from ledger_integrity.services.audit import create_audit_context, log_audit_event
from ledger_integrity.services.errors import YearEndClosingError
from ledger_integrity.services.fiscal_year import (
    calculate_year_end_balances,
    get_accounting_periods,
    get_fiscal_year,
)
from ledger_integrity.services.ledger_validator import calculate_balance, round_money
from ledger_integrity.services.side_effects import run_best_effort_write
from ledger_integrity.services.transactions import (
    apply_entries_to_balances,
    entries_of,
    save_transaction_atomic,
)

logger = get_logger(__name__)

RETAINED_EARNINGS_CATEGORY = "RETAINED_EARNINGS"
RETAINED_EARNINGS_MISSING = (
    "Retained Earnings account not found. Please create an equity account with code "
    f"{settings.retained_earnings_code} or category {RETAINED_EARNINGS_CATEGORY}."
)


async def find_retained_earnings_account(db: AsyncSession) -> Account | None:
    """Look up by configured code, then by category, then an equity account named 'retained'."""
    lookups = (
        select(Account).where(Account.code == settings.retained_earnings_code),
        select(Account).where(Account.category == RETAINED_EARNINGS_CATEGORY),
        select(Account)
        .where(Account.account_type == AccountType.EQUITY)
        .where(Account.name.ilike("%retained%")),
    )
    for query in lookups:
        result = await db.execute(
            query.where(Account.is_active.is_(True)).order_by(Account.code).limit(1)
        )
        account = result.scalar_one_or_none()
        if account is not None:
            return account
    return None


def _closing_line(
    balance: ClosedAccountBalance, *, close_with_debit: bool, fiscal_year_name: str
) -> LedgerEntry:
    amount = abs(balance.closing_balance)
    return LedgerEntry(
        account_id=balance.account_id,
        account_code=balance.account_code,
        account_name=balance.account_name,
        debit=amount if close_with_debit else Decimal("0"),
        credit=Decimal("0") if close_with_debit else amount,
        description=f"Year-end closing {fiscal_year_name} - Close {balance.account_name}",
    )


def generate_closing_entries(
    revenue_accounts: Sequence[ClosedAccountBalance],
    expense_accounts: Sequence[ClosedAccountBalance],
    retained_earnings: Account,
    fiscal_year_name: str,
) -> tuple[list[LedgerEntry], Decimal, Decimal]:
    """Entries that zero every closed account and move net income to Retained Earnings.

    Income accounts normally carry credit balances and are closed with a debit;
    expense accounts the reverse. A negative (contra) balance is closed on the
    opposite side. Returns (entries, total_debits, total_credits).
    """
    entries: list[LedgerEntry] = []
    for balance in revenue_accounts:
        if balance.closing_balance:
            entries.append(
                _closing_line(
                    balance,
                    close_with_debit=balance.closing_balance > 0,
                    fiscal_year_name=fiscal_year_name,
                )
            )
    for balance in expense_accounts:
        if balance.closing_balance:
            entries.append(
                _closing_line(
                    balance,
                    close_with_debit=balance.closing_balance < 0,
                    fiscal_year_name=fiscal_year_name,
                )
            )

    total_revenue = sum((b.closing_balance for b in revenue_accounts), Decimal("0"))
    total_expenses = sum((b.closing_balance for b in expense_accounts), Decimal("0"))
    net_income = round_money(total_revenue - total_expenses)
    if net_income:
        profit = net_income > 0
        entries.append(
            LedgerEntry(
                account_id=str(retained_earnings.id),
                account_code=retained_earnings.code,
                account_name=retained_earnings.name,
                debit=Decimal("0") if profit else abs(net_income),
                credit=net_income if profit else Decimal("0"),
                description=(
                    "Year-end closing - Transfer net profit to Retained Earnings"
                    if profit
                    else "Year-end closing - Transfer net loss to Retained Earnings"
                ),
            )
        )

    balance = calculate_balance(entries)
    return entries, balance.total_debits, balance.total_credits


async def check_year_end_closing_readiness(
    db: AsyncSession, fiscal_year_id: UUID
) -> ClosingReadiness:
    """Errors block closing; warnings are advisory."""
    fiscal_year = await get_fiscal_year(db, fiscal_year_id)
    if fiscal_year is None:
        return ClosingReadiness(is_ready=False, errors=["Fiscal year not found"])

    errors: list[str] = []
    warnings: list[str] = []
    if fiscal_year.is_year_end_closed:
        errors.append("Fiscal year has already been closed")

    periods = await get_accounting_periods(db, fiscal_year.id)
    by_status: dict[PeriodStatus, list[AccountingPeriodResponse]] = {s: [] for s in PeriodStatus}
    for period in periods:
        by_status[period.status].append(AccountingPeriodResponse.model_validate(period))

    open_periods = by_status[PeriodStatus.OPEN]
    if open_periods:
        names = ", ".join(p.name for p in open_periods)
        errors.append(f"{len(open_periods)} period(s) are still open: {names}")

    retained_earnings = await find_retained_earnings_account(db)
    if retained_earnings is None:
        errors.append(RETAINED_EARNINGS_MISSING)

    if by_status[PeriodStatus.CLOSED] and not by_status[PeriodStatus.LOCKED]:
        warnings.append(
            "Consider locking all periods before year-end closing to prevent accidental reopening."
        )
    if fiscal_year.end_date > date.today():
        warnings.append(
            "Fiscal year end date has not yet passed. Are you sure you want to close early?"
        )

    return ClosingReadiness(
        is_ready=not errors,
        fiscal_year=FiscalYearResponse.model_validate(fiscal_year),
        open_periods=open_periods,
        closed_periods=by_status[PeriodStatus.CLOSED],
        locked_periods=by_status[PeriodStatus.LOCKED],
        retained_earnings_account=(
            RetainedEarningsAccount.model_validate(retained_earnings)
            if retained_earnings is not None
            else None
        ),
        errors=errors,
        warnings=warnings,
    )


async def _require_fiscal_year(db: AsyncSession, fiscal_year_id: UUID) -> FiscalYear:
    fiscal_year = await get_fiscal_year(db, fiscal_year_id)
    if fiscal_year is None:
        raise YearEndClosingError("Fiscal year not found", "FISCAL_YEAR_NOT_FOUND")
    return fiscal_year


async def _require_retained_earnings(db: AsyncSession) -> Account:
    account = await find_retained_earnings_account(db)
    if account is None:
        raise YearEndClosingError(RETAINED_EARNINGS_MISSING, "RETAINED_EARNINGS_NOT_FOUND")
    return account


async def preview_year_end_closing(db: AsyncSession, fiscal_year_id: UUID) -> ClosingPreview:
    """What execution would post, without writing anything."""
    fiscal_year = await _require_fiscal_year(db, fiscal_year_id)
    retained_earnings = await _require_retained_earnings(db)
    balances = await calculate_year_end_balances(db)
    entries, total_debits, total_credits = generate_closing_entries(
        balances.revenue_accounts, balances.expense_accounts, retained_earnings, fiscal_year.name
    )
    return ClosingPreview(
        fiscal_year=FiscalYearResponse.model_validate(fiscal_year),
        retained_earnings_account=RetainedEarningsAccount.model_validate(retained_earnings),
        balances=balances,
        closing_entries=entries,
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=calculate_balance(entries).is_balanced,
    )


async def execute_year_end_closing(
    db: AsyncSession,
    fiscal_year_id: UUID,
    *,
    user_id: str,
    user_name: str | None = None,
    closing_date: date | None = None,
) -> ClosingResult:
    """Post the closing journal, zero income/expense accounts and close the fiscal year."""
    async with async_log_timing(
        "year_end_closing", logger=logger, fiscal_year_id=str(fiscal_year_id)
    ) as timing:
        fiscal_year = await _require_fiscal_year(db, fiscal_year_id)
        readiness = await check_year_end_closing_readiness(db, fiscal_year_id)
        if not readiness.is_ready:
            raise YearEndClosingError(
                "Fiscal year is not ready for closing",
                "NOT_READY",
                {"errors": readiness.errors},
            )

        retained_earnings = await _require_retained_earnings(db)
        balances = await calculate_year_end_balances(db)
        entries, total_debits, total_credits = generate_closing_entries(
            balances.revenue_accounts,
            balances.expense_accounts,
            retained_earnings,
            fiscal_year.name,
        )
        if not calculate_balance(entries).is_balanced:
            raise YearEndClosingError(
                f"Closing entries do not balance: Debits={total_debits}, Credits={total_credits}",
                "ENTRIES_UNBALANCED",
                {"total_debits": str(total_debits), "total_credits": str(total_credits)},
            )

        closing_on = closing_date or fiscal_year.end_date
        closing_entry_id = uuid4()

        async def _close_books(session: AsyncSession, journal: Transaction) -> None:
            if entries:
                await apply_entries_to_balances(session, entries)
            session.add(
                YearEndClosingEntry(
                    id=closing_entry_id,
                    fiscal_year_id=fiscal_year.id,
                    fiscal_year_name=fiscal_year.name,
                    closing_date=closing_on,
                    retained_earnings_account_id=retained_earnings.id,
                    retained_earnings_account_code=retained_earnings.code,
                    revenue_accounts=[a.model_dump(mode="json") for a in balances.revenue_accounts],
                    expense_accounts=[a.model_dump(mode="json") for a in balances.expense_accounts],
                    total_revenue=balances.total_revenue,
                    total_expenses=balances.total_expenses,
                    net_income=balances.net_income,
                    journal_entry_id=journal.id,
                    journal_entry_number=journal.transaction_number,
                    status=ClosingStatus.POSTED,
                    created_by=user_id,
                )
            )
            fiscal_year.status = PeriodStatus.CLOSED
            fiscal_year.is_year_end_closed = True
            fiscal_year.year_end_closing_date = closing_on
            fiscal_year.year_end_closing_journal_id = journal.id
            fiscal_year.closed_by = user_id

        journal = await save_transaction_atomic(
            db,
            TransactionCreate(
                type=TransactionType.JOURNAL_ENTRY,
                transaction_date=closing_on,
                description=f"Year-end closing for {fiscal_year.name}",
                reference=f"Year-End Closing - {fiscal_year.name}",
                entries=entries,
                status=TransactionStatus.POSTED,
                journal_type=JournalType.CLOSING,
            ),
            user_id=user_id,
            on_write=_close_books,
            skip_period_check=True,
        )
        timing["net_income"] = str(balances.net_income)
        timing["closed_accounts"] = len(balances.revenue_accounts) + len(balances.expense_accounts)

    logger.info(
        "Year-end closing executed",
        fiscal_year=fiscal_year.name,
        closing_entry_id=str(closing_entry_id),
        journal_entry_number=journal.transaction_number,
        net_income=str(balances.net_income),
        user_id=user_id,
    )

    await run_best_effort_write(
        "audit_log",
        db,
        lambda session: log_audit_event(
            session,
            create_audit_context(user_id, user_name=user_name),
            "YEAR_END_CLOSING_EXECUTED",
            "FISCAL_YEAR",
            str(fiscal_year.id),
            f"Year-end closing completed for {fiscal_year.name}. "
            f"Net Income: {balances.net_income:,.2f} {settings.base_currency}",
            entity_name=fiscal_year.name,
            severity=AuditSeverity.CRITICAL,
            details={
                "closing_entry_id": str(closing_entry_id),
                "journal_entry_id": str(journal.id),
                "total_revenue": str(balances.total_revenue),
                "total_expenses": str(balances.total_expenses),
                "net_income": str(balances.net_income),
            },
        ),
        fiscal_year_id=str(fiscal_year.id),
    )

    return ClosingResult(
        closing_entry_id=closing_entry_id,
        journal_entry_id=journal.id,
        journal_entry_number=journal.transaction_number,
        net_income=balances.net_income,
    )


async def reverse_year_end_closing(
    db: AsyncSession,
    closing_entry_id: UUID,
    *,
    user_id: str,
    user_name: str | None = None,
    reason: str,
) -> ReversalResult:
    """Post a reversing journal, restore closed balances and reopen the fiscal year."""
    closing_entry = await db.get(YearEndClosingEntry, closing_entry_id)
    if closing_entry is None:
        raise YearEndClosingError("Year-end closing entry not found", "CLOSING_ENTRY_NOT_FOUND")
    if closing_entry.status is ClosingStatus.REVERSED:
        raise YearEndClosingError(
            "Year-end closing entry has already been reversed", "ALREADY_REVERSED"
        )

    original = await db.get(Transaction, closing_entry.journal_entry_id)
    if original is None:
        raise YearEndClosingError("Original closing journal entry not found", "JOURNAL_NOT_FOUND")
    fiscal_year = await _require_fiscal_year(db, closing_entry.fiscal_year_id)

    reversal_entries = [entry.as_reversal() for entry in entries_of(original)]
    reversal_date = date.today()

    async def _reopen_books(session: AsyncSession, reversal: Transaction) -> None:
        if reversal_entries:
            await apply_entries_to_balances(session, reversal_entries)
        original.is_reversed = True
        original.reversal_journal_id = reversal.id

        closing_entry.status = ClosingStatus.REVERSED
        closing_entry.reversal_date = reversal_date
        closing_entry.reversal_journal_id = reversal.id
        closing_entry.reversal_reason = reason

        fiscal_year.status = PeriodStatus.OPEN
        fiscal_year.is_year_end_closed = False
        fiscal_year.year_end_closing_date = None
        fiscal_year.year_end_closing_journal_id = None
        fiscal_year.closed_by = None

    reversal = await save_transaction_atomic(
        db,
        TransactionCreate(
            type=TransactionType.JOURNAL_ENTRY,
            transaction_date=reversal_date,
            description=f"Reversal of year-end closing for {closing_entry.fiscal_year_name}",
            reference=f"Reversal - {reason}"[:100],
            entries=reversal_entries,
            status=TransactionStatus.POSTED,
            journal_type=JournalType.REVERSING,
            original_journal_id=original.id,
        ),
        user_id=user_id,
        on_write=_reopen_books,
        skip_period_check=True,
    )

    logger.info(
        "Year-end closing reversed",
        fiscal_year=closing_entry.fiscal_year_name,
        closing_entry_id=str(closing_entry.id),
        reversal_journal_id=str(reversal.id),
        user_id=user_id,
    )

    await run_best_effort_write(
        "audit_log",
        db,
        lambda session: log_audit_event(
            session,
            create_audit_context(user_id, user_name=user_name),
            "YEAR_END_CLOSING_REVERSED",
            "FISCAL_YEAR",
            str(closing_entry.fiscal_year_id),
            f"Year-end closing reversed for {closing_entry.fiscal_year_name}: {reason}",
            entity_name=closing_entry.fiscal_year_name,
            severity=AuditSeverity.WARNING,
            details={
                "closing_entry_id": str(closing_entry.id),
                "reversal_journal_id": str(reversal.id),
                "reversed_at": datetime.now(UTC).isoformat(),
            },
        ),
        fiscal_year_id=str(closing_entry.fiscal_year_id),
    )

    return ReversalResult(
        closing_entry_id=closing_entry.id,
        reversal_journal_id=reversal.id,
        reversal_journal_number=reversal.transaction_number,
    )


async def get_year_end_closing_history(
    db: AsyncSession, fiscal_year_id: UUID | None = None
) -> list[YearEndClosingEntry]:
    query = select(YearEndClosingEntry).order_by(YearEndClosingEntry.created_at.desc())
    if fiscal_year_id is not None:
        query = query.where(YearEndClosingEntry.fiscal_year_id == fiscal_year_id)
    result = await db.execute(query)
    return list(result.scalars().all())
