"""Tests for the guarded transaction save, post and void paths."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from structlog.testing import capture_logs

from ledger_integrity.config import settings
from ledger_integrity.database import atomic
from ledger_integrity.models import (
    Account,
    AccountType,
    AuditLog,
    JournalType,
    PaymentStatus,
    PeriodStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_integrity.schemas.ledger import LedgerEntry
from ledger_integrity.schemas.transaction import TransactionCreate
from ledger_integrity.services import fiscal_year as fiscal_year_service
from ledger_integrity.services import transactions as transactions_service
from ledger_integrity.services.errors import (
    ClosedPeriodError,
    InvalidTransitionError,
    PeriodResolutionError,
    UnbalancedEntriesError,
    ValidationError,
)
from ledger_integrity.services.transactions import (
    can_void_transaction,
    generate_transaction_number,
    post_transaction,
    save_transaction,
    save_transaction_atomic,
    save_transaction_batch,
    void_transaction,
)
from tests.factories import AccountFactory, FiscalYearFactory, TransactionFactory

MARCH_15 = date(2024, 3, 15)


async def _cash_and_revenue(db):
    cash = await AccountFactory.create_async(db, code="1000", name="Cash")
    revenue = await AccountFactory.create_async(
        db, code="4000", name="Sales", account_type=AccountType.INCOME
    )
    await db.commit()
    return cash, revenue


def _sale(cash, revenue, amount="100.00", **overrides) -> TransactionCreate:
    fields = {
        "type": TransactionType.JOURNAL_ENTRY,
        "transaction_date": MARCH_15,
        "description": "Cash sale",
        "entries": [
            LedgerEntry(account_id=str(cash.id), debit=Decimal(amount)),
            LedgerEntry(account_id=str(revenue.id), credit=Decimal(amount)),
        ],
    }
    fields.update(overrides)
    return TransactionCreate(**fields)


async def _transaction_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(Transaction))


class TestSaveTransaction:
    @pytest.mark.asyncio
    async def test_balanced_entries_are_saved(self, db):
        cash, revenue = await _cash_and_revenue(db)

        txn = await save_transaction(db, _sale(cash, revenue), user_id="user-1")

        assert txn.transaction_number == "JE-2024-0001"
        assert txn.status is TransactionStatus.DRAFT
        assert txn.total_amount == Decimal("100.00")
        assert txn.created_by == "user-1"
        assert [entry["account_id"] for entry in txn.entries] == [str(cash.id), str(revenue.id)]
        assert await _transaction_count(db) == 1

    @pytest.mark.asyncio
    async def test_unbalanced_entries_are_refused(self, db):
        cash, revenue = await _cash_and_revenue(db)
        data = _sale(
            cash,
            revenue,
            entries=[
                LedgerEntry(account_id=str(cash.id), debit=Decimal("100.00")),
                LedgerEntry(account_id=str(revenue.id), credit=Decimal("90.00")),
            ],
        )

        with pytest.raises(UnbalancedEntriesError) as exc_info:
            await save_transaction(db, data, user_id="user-1")

        assert exc_info.value.total_debits == Decimal("100.00")
        assert exc_info.value.total_credits == Decimal("90.00")
        assert await _transaction_count(db) == 0

    @pytest.mark.asyncio
    async def test_document_without_entries_is_allowed(self, db):
        data = TransactionCreate(
            type=TransactionType.CUSTOMER_PAYMENT,
            transaction_date=MARCH_15,
            total_amount=Decimal("42.005"),
        )

        txn = await save_transaction(db, data, user_id="user-1")

        assert txn.transaction_number == "RCPT-2024-0001"
        assert txn.total_amount == Decimal("42.01")

    @pytest.mark.asyncio
    async def test_closed_period_refuses_write(self, db):
        cash, revenue = await _cash_and_revenue(db)
        await FiscalYearFactory.create_with_periods_async(db, period_status=PeriodStatus.CLOSED)
        await db.commit()

        with pytest.raises(ClosedPeriodError) as exc_info:
            await save_transaction(db, _sale(cash, revenue), user_id="user-1")

        assert str(exc_info.value) == (
            "Cannot post transaction: the accounting period for 2024-03-15 (Q1 2024) is closed. "
            "Please contact your accountant to reopen the period."
        )
        assert await _transaction_count(db) == 0

    @pytest.mark.asyncio
    async def test_locked_fiscal_year_refuses_write(self, db):
        cash, revenue = await _cash_and_revenue(db)
        await FiscalYearFactory.create_async(db, status=PeriodStatus.LOCKED)
        await db.commit()

        with pytest.raises(ClosedPeriodError, match=r"\(FY 2024\) is locked"):
            await save_transaction(db, _sale(cash, revenue), user_id="user-1")

    @pytest.mark.asyncio
    async def test_skip_period_check_bypasses_closed_period(self, db):
        cash, revenue = await _cash_and_revenue(db)
        await FiscalYearFactory.create_with_periods_async(db, period_status=PeriodStatus.CLOSED)
        await db.commit()

        txn = await save_transaction(
            db, _sale(cash, revenue), user_id="system", skip_period_check=True
        )

        assert txn.id is not None

    @pytest.mark.asyncio
    async def test_open_period_allows_write(self, db):
        cash, revenue = await _cash_and_revenue(db)
        await FiscalYearFactory.create_with_periods_async(db)
        await db.commit()

        txn = await save_transaction(db, _sale(cash, revenue), user_id="user-1")

        assert txn.transaction_date == MARCH_15

    @pytest.mark.asyncio
    async def test_no_fiscal_year_allows_write_with_warning(self, db):
        cash, revenue = await _cash_and_revenue(db)

        with capture_logs() as logs:
            await save_transaction(db, _sale(cash, revenue), user_id="user-1")

        assert any(
            log["event"] == "No fiscal year configured for transaction date - allowing write"
            for log in logs
        )

    @pytest.mark.asyncio
    async def test_failed_period_lookup_refuses_write(self, db, monkeypatch):
        cash, revenue = await _cash_and_revenue(db)

        async def broken_lookup(session, on_date):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        monkeypatch.setattr(fiscal_year_service, "resolve_period", broken_lookup)

        with pytest.raises(PeriodResolutionError, match="2024-03-15"):
            await save_transaction(db, _sale(cash, revenue), user_id="user-1")
        assert await _transaction_count(db) == 0

    @pytest.mark.asyncio
    async def test_failed_period_lookup_allowed_when_configured(self, db, monkeypatch):
        cash, revenue = await _cash_and_revenue(db)

        async def broken_lookup(session, on_date):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        monkeypatch.setattr(fiscal_year_service, "resolve_period", broken_lookup)
        monkeypatch.setattr(settings, "allow_writes_when_period_unresolved", True)

        txn = await save_transaction(db, _sale(cash, revenue), user_id="user-1")

        assert txn.id is not None


class TestEntityResolution:
    @pytest.mark.asyncio
    async def test_entity_entry_points_at_receivable_account(self, db):
        receivable = await AccountFactory.create_async(
            db, code=settings.accounts_receivable_code, name="Accounts Receivable"
        )
        revenue = await AccountFactory.create_async(db, account_type=AccountType.INCOME)
        await db.commit()
        data = TransactionCreate(
            type=TransactionType.CUSTOMER_INVOICE,
            transaction_date=MARCH_15,
            entries=[
                LedgerEntry(entity_id="customer-1", debit=Decimal("250.00")),
                LedgerEntry(account_id=str(revenue.id), credit=Decimal("250.00")),
            ],
        )

        txn = await save_transaction(db, data, user_id="user-1")

        assert txn.entries[0]["account_id"] == str(receivable.id)
        assert txn.entries[0]["account_code"] == settings.accounts_receivable_code
        assert txn.entries[0]["entity_id"] == "customer-1"

    @pytest.mark.asyncio
    async def test_missing_control_account_leaves_entity_reference(self, db):
        revenue = await AccountFactory.create_async(db, account_type=AccountType.INCOME)
        await db.commit()
        data = TransactionCreate(
            type=TransactionType.CUSTOMER_INVOICE,
            transaction_date=MARCH_15,
            entries=[
                LedgerEntry(entity_id="customer-1", debit=Decimal("250.00")),
                LedgerEntry(account_id=str(revenue.id), credit=Decimal("250.00")),
            ],
        )

        with capture_logs() as logs:
            txn = await save_transaction(db, data, user_id="user-1")

        assert "account_id" not in txn.entries[0]
        assert any(
            log["event"] == "Control account not found - entity entries left unresolved"
            for log in logs
        )


class TestNumbering:
    @pytest.mark.asyncio
    async def test_number_continues_existing_sequence(self, db):
        await TransactionFactory.create_async(db, transaction_number="INV-2024-0001")
        await TransactionFactory.create_async(db, transaction_number="INV-2024-0002")
        await db.commit()

        number = await generate_transaction_number(
            db, TransactionType.CUSTOMER_INVOICE, date(2024, 6, 1)
        )

        assert number == "INV-2024-0003"

    @pytest.mark.asyncio
    async def test_sequence_is_per_year(self, db):
        await TransactionFactory.create_async(db, transaction_number="INV-2024-0001")
        await db.commit()

        number = await generate_transaction_number(
            db, TransactionType.CUSTOMER_INVOICE, date(2025, 1, 2)
        )

        assert number == "INV-2025-0001"

    @pytest.mark.asyncio
    async def test_explicit_number_is_kept(self, db):
        cash, revenue = await _cash_and_revenue(db)

        txn = await save_transaction(
            db, _sale(cash, revenue, transaction_number="JE-MANUAL-1"), user_id="user-1"
        )

        assert txn.transaction_number == "JE-MANUAL-1"


class TestAtomicAndBatch:
    @pytest.mark.asyncio
    async def test_on_write_runs_in_same_unit_of_work(self, db):
        cash, revenue = await _cash_and_revenue(db)
        seen = []

        async def on_write(session, txn):
            seen.append(txn.id)
            account = await session.get(Account, cash.id)
            account.description = f"Touched by {txn.transaction_number}"

        txn = await save_transaction_atomic(
            db, _sale(cash, revenue), user_id="user-1", on_write=on_write
        )

        assert seen == [txn.id]
        refreshed = await db.get(Account, cash.id)
        assert refreshed.description == "Touched by JE-2024-0001"

    @pytest.mark.asyncio
    async def test_failing_on_write_rolls_back_transaction(self, db):
        cash, revenue = await _cash_and_revenue(db)

        async def on_write(session, txn):
            raise RuntimeError("balance update failed")

        with pytest.raises(RuntimeError, match="balance update failed"):
            await save_transaction_atomic(
                db, _sale(cash, revenue), user_id="user-1", on_write=on_write
            )

        assert await _transaction_count(db) == 0

    @pytest.mark.asyncio
    async def test_batch_numbers_sequentially(self, db):
        cash, revenue = await _cash_and_revenue(db)

        saved = await save_transaction_batch(
            db, [_sale(cash, revenue), _sale(cash, revenue, amount="50.00")], user_id="user-1"
        )

        assert [txn.transaction_number for txn in saved] == ["JE-2024-0001", "JE-2024-0002"]
        assert await _transaction_count(db) == 2

    @pytest.mark.asyncio
    async def test_one_invalid_item_writes_nothing(self, db):
        cash, revenue = await _cash_and_revenue(db)
        broken = _sale(cash, revenue, entries=[LedgerEntry(account_id=str(cash.id), debit=1)])

        with pytest.raises(UnbalancedEntriesError):
            await save_transaction_batch(db, [_sale(cash, revenue), broken], user_id="user-1")

        assert await _transaction_count(db) == 0

    @pytest.mark.asyncio
    async def test_batch_validates_every_item_before_period_checks(self, db):
        cash, revenue = await _cash_and_revenue(db)
        await FiscalYearFactory.create_with_periods_async(db, period_status=PeriodStatus.CLOSED)
        await db.commit()
        broken = _sale(
            cash,
            revenue,
            transaction_date=date(2023, 6, 1),
            entries=[LedgerEntry(account_id=str(cash.id), debit=1)],
        )

        with pytest.raises(UnbalancedEntriesError):
            await save_transaction_batch(db, [_sale(cash, revenue), broken], user_id="user-1")

        with pytest.raises(ClosedPeriodError):
            await save_transaction_batch(
                db, [_sale(cash, revenue), _sale(cash, revenue, amount="5.00")], user_id="user-1"
            )
        assert await _transaction_count(db) == 0

    @pytest.mark.asyncio
    async def test_empty_batch(self, db):
        assert await save_transaction_batch(db, [], user_id="user-1") == []


class TestPostAndVoid:
    @pytest.mark.asyncio
    async def test_post_moves_balances(self, db):
        cash, revenue = await _cash_and_revenue(db)
        txn = await save_transaction(
            db, _sale(cash, revenue, status=TransactionStatus.APPROVED), user_id="user-1"
        )

        posted = await post_transaction(db, txn.id, user_id="user-1")

        assert posted.status is TransactionStatus.POSTED
        assert posted.posted_at is not None
        assert (await db.get(Account, cash.id)).current_balance == Decimal("100.00")
        assert (await db.get(Account, revenue.id)).current_balance == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_draft_document_cannot_be_posted(self, db):
        txn = await TransactionFactory.create_async(db)
        await db.commit()

        with pytest.raises(InvalidTransitionError, match="status DRAFT cannot be posted"):
            await post_transaction(db, txn.id, user_id="user-1")

    @pytest.mark.asyncio
    async def test_void_posted_creates_reversal_and_restores_balances(self, db):
        cash, revenue = await _cash_and_revenue(db)
        txn = await save_transaction(db, _sale(cash, revenue), user_id="user-1")
        await post_transaction(db, txn.id, user_id="user-1")

        voided = await void_transaction(
            db, txn.id, reason="Duplicate entry", user_id="user-1", user_name="Asha"
        )

        assert voided.status is TransactionStatus.VOID
        assert voided.void_reason == "Duplicate entry"
        assert voided.is_reversed is True
        reversal = await db.get(Transaction, voided.reversal_journal_id)
        assert reversal.journal_type is JournalType.REVERSING
        assert reversal.status is TransactionStatus.POSTED
        assert reversal.original_journal_id == txn.id
        assert reversal.entries[0]["credit"] == "100.00"
        assert reversal.entries[0]["description"].startswith("[REVERSAL] ")
        assert (await db.get(Account, cash.id)).current_balance == Decimal("0.00")
        assert (await db.get(Account, revenue.id)).current_balance == Decimal("0.00")

        audit = (await db.execute(select(AuditLog))).scalars().one()
        assert audit.action == "TRANSACTION_VOIDED"
        assert audit.actor_name == "Asha"

    @pytest.mark.asyncio
    async def test_audit_failing_at_commit_does_not_break_void(self, db, monkeypatch):
        cash, revenue = await _cash_and_revenue(db)
        txn = await save_transaction(db, _sale(cash, revenue), user_id="user-1")
        await post_transaction(db, txn.id, user_id="user-1")

        async def actionless_audit(session, context, action, *args, **kwargs):
            async with atomic(session):
                session.add(
                    AuditLog(
                        actor_id=context.user_id,
                        action=None,
                        entity_type="TRANSACTION",
                        entity_id=str(txn.id),
                        description="voided",
                    )
                )

        monkeypatch.setattr(transactions_service, "log_audit_event", actionless_audit)

        voided = await void_transaction(db, txn.id, reason="Duplicate entry", user_id="user-1")

        assert voided.status is TransactionStatus.VOID
        assert voided.transaction_number == txn.transaction_number
        assert voided.reversal_journal_id is not None
        assert (await db.get(Account, cash.id)).current_balance == Decimal("0.00")
        assert (await db.execute(select(AuditLog))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_void_draft_has_no_reversal(self, db):
        txn = await TransactionFactory.create_async(db)
        await db.commit()

        voided = await void_transaction(db, txn.id, reason="Entered twice", user_id="user-1")

        assert voided.status is TransactionStatus.VOID
        assert voided.is_reversed is False
        assert voided.reversal_journal_id is None
        assert await _transaction_count(db) == 1

    @pytest.mark.asyncio
    async def test_void_requires_reason(self, db):
        txn = await TransactionFactory.create_async(db)
        await db.commit()

        with pytest.raises(ValidationError, match="Void reason is required"):
            await void_transaction(db, txn.id, reason="  ", user_id="user-1")

    @pytest.mark.asyncio
    async def test_void_twice_is_refused(self, db):
        txn = await TransactionFactory.create_async(db, status=TransactionStatus.VOID)
        await db.commit()

        with pytest.raises(InvalidTransitionError, match="Invoice is already voided"):
            await void_transaction(db, txn.id, reason="again", user_id="user-1")


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({}, (True, None)),
        ({"status": TransactionStatus.VOID}, (False, "Invoice is already voided")),
        (
            {"payment_status": PaymentStatus.PAID},
            (False, "Cannot void an invoice that has been fully paid"),
        ),
        (
            {"type": TransactionType.VENDOR_BILL, "payment_status": PaymentStatus.PARTIALLY_PAID},
            (False, "Cannot void a bill with partial payments. Reverse payments first."),
        ),
    ],
)
def test_can_void_transaction(overrides, expected):
    txn = TransactionFactory.build(**overrides)

    assert can_void_transaction(txn) == expected
