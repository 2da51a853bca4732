"""Transaction persistence guarded by double-entry and fiscal period checks.

There are three ways to write a transaction (single, atomic with extra writes,
batch). All of them resolve entity references, enforce double-entry balance and
check the fiscal period, in that order, before anything is added to the session.
A batch finishes the first two steps for every item before any period check.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.config import settings
from ledger_integrity.database import atomic
from ledger_integrity.logger import get_logger
from ledger_integrity.models import (
    Account,
    AuditSeverity,
    JournalType,
    PaymentStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_integrity.schemas.ledger import LedgerEntry
from ledger_integrity.schemas.transaction import TransactionCreate
from ledger_integrity.services.audit import create_audit_context, log_audit_event
from ledger_integrity.services.errors import (
    AccountNotFoundError,
    InvalidTransitionError,
    TransactionNotFoundError,
    UnbalancedEntriesError,
    ValidationError,
)
from ledger_integrity.services.fiscal_year import check_transaction_period
from ledger_integrity.services.ledger_validator import (
    EntryInput,
    calculate_balance,
    coerce_entries,
    round_money,
    validate_ledger_entries,
)
from ledger_integrity.services.side_effects import run_best_effort_write

logger = get_logger(__name__)

NUMBER_PREFIXES: dict[TransactionType, str] = {
    TransactionType.CUSTOMER_INVOICE: "INV",
    TransactionType.CUSTOMER_PAYMENT: "RCPT",
    TransactionType.VENDOR_BILL: "BILL",
    TransactionType.VENDOR_PAYMENT: "PAY",
    TransactionType.JOURNAL_ENTRY: "JE",
}

TYPE_LABELS: dict[TransactionType, str] = {
    TransactionType.CUSTOMER_INVOICE: "Invoice",
    TransactionType.CUSTOMER_PAYMENT: "Receipt",
    TransactionType.VENDOR_BILL: "Bill",
    TransactionType.VENDOR_PAYMENT: "Payment",
    TransactionType.JOURNAL_ENTRY: "Journal entry",
}

_RECEIVABLE_TYPES = frozenset({TransactionType.CUSTOMER_INVOICE, TransactionType.CUSTOMER_PAYMENT})
_PAYABLE_TYPES = frozenset({TransactionType.VENDOR_BILL, TransactionType.VENDOR_PAYMENT})

OnWrite = Callable[[AsyncSession, Transaction], Awaitable[Any]]


def entries_of(transaction: Transaction) -> list[LedgerEntry]:
    """Stored JSON entries as LedgerEntry values."""
    return coerce_entries(transaction.entries)


def dump_entries(entries: Sequence[LedgerEntry]) -> list[dict[str, Any]]:
    return [entry.model_dump(mode="json", exclude_none=True) for entry in entries]


def _parse_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


# =============================================================================
# Validation steps
# =============================================================================


def enforce_double_entry(entries: Sequence[EntryInput] | None) -> None:
    """Raise UnbalancedEntriesError unless entries pass the ledger validator.

    An empty or missing list is allowed; some documents (e.g. cash-free
    payments) carry no ledger entries.
    """
    if not entries:
        return

    result = validate_ledger_entries(entries)
    if not result.is_valid:
        balance = calculate_balance(entries)
        logger.warning(
            "Double-entry validation failed",
            errors=result.errors,
            total_debits=str(balance.total_debits),
            total_credits=str(balance.total_credits),
        )
        raise UnbalancedEntriesError(balance.total_debits, balance.total_credits, result.errors)

    if result.warnings:
        logger.info("Ledger entries accepted with warnings", warnings=result.warnings)


def control_account_code(transaction_type: TransactionType) -> str | None:
    if transaction_type in _RECEIVABLE_TYPES:
        return settings.accounts_receivable_code
    if transaction_type in _PAYABLE_TYPES:
        return settings.accounts_payable_code
    return None


async def resolve_entity_accounts(
    db: AsyncSession,
    transaction_type: TransactionType,
    entries: Sequence[EntryInput],
) -> list[LedgerEntry]:
    """Point entity-only entries at the receivable/payable control account."""
    normalized = coerce_entries(entries)
    needs_account = [e for e in normalized if e.entity_id and not e.account_id]
    code = control_account_code(transaction_type)
    if not needs_account or code is None:
        return normalized

    result = await db.execute(select(Account).where(Account.code == code))
    account = result.scalar_one_or_none()
    if account is None:
        logger.warning(
            "Control account not found - entity entries left unresolved",
            account_code=code,
            transaction_type=transaction_type.value,
            entry_count=len(needs_account),
        )
        return normalized

    return [
        entry.model_copy(
            update={
                "account_id": str(account.id),
                "account_code": account.code,
                "account_name": entry.account_name or account.name,
            }
        )
        if entry.entity_id and not entry.account_id
        else entry
        for entry in normalized
    ]


# =============================================================================
# Numbering
# =============================================================================


class _NumberSequence:
    """Hands out sequential numbers per type and year within one unit of work."""

    def __init__(self, db: AsyncSession):
        self._db = db
        self._next: dict[str, int] = {}

    async def next(self, transaction_type: TransactionType, on_date: date) -> str:
        prefix = f"{NUMBER_PREFIXES[transaction_type]}-{on_date.year}-"
        if prefix not in self._next:
            count = await self._db.scalar(
                select(func.count())
                .select_from(Transaction)
                .where(
                    Transaction.type == transaction_type,
                    Transaction.transaction_number.like(f"{prefix}%"),
                )
            )
            self._next[prefix] = (count or 0) + 1
        number = self._next[prefix]
        self._next[prefix] = number + 1
        return f"{prefix}{number:04d}"


async def generate_transaction_number(
    db: AsyncSession, transaction_type: TransactionType, on_date: date
) -> str:
    """Next number like INV-2024-0007."""
    return await _NumberSequence(db).next(transaction_type, on_date)


# =============================================================================
# Save paths
# =============================================================================


async def _validated_entries(db: AsyncSession, data: TransactionCreate) -> list[LedgerEntry]:
    entries = await resolve_entity_accounts(db, data.type, data.entries)
    enforce_double_entry(entries)
    return entries


async def _build_transaction(
    data: TransactionCreate,
    entries: list[LedgerEntry],
    *,
    user_id: str,
    numbers: _NumberSequence,
) -> Transaction:
    number = data.transaction_number or await numbers.next(data.type, data.transaction_date)
    if data.total_amount is not None:
        total = round_money(data.total_amount)
    else:
        total = calculate_balance(entries).total_debits

    return Transaction(
        id=uuid4(),
        transaction_number=number,
        type=data.type,
        status=data.status,
        transaction_date=data.transaction_date,
        description=data.description,
        reference=data.reference,
        cheque_number=data.cheque_number,
        vendor_invoice_number=data.vendor_invoice_number,
        entity_id=data.entity_id,
        entity_name=data.entity_name,
        total_amount=total,
        currency=data.currency,
        entries=dump_entries(entries),
        journal_type=data.journal_type,
        payment_status=data.payment_status,
        original_journal_id=data.original_journal_id,
        approval_history=[],
        posted_at=datetime.now(UTC) if data.status is TransactionStatus.POSTED else None,
        created_by=user_id,
    )


async def _prepare_transaction(
    db: AsyncSession,
    data: TransactionCreate,
    *,
    user_id: str,
    skip_period_check: bool,
    numbers: _NumberSequence,
) -> Transaction:
    entries = await _validated_entries(db, data)
    if not skip_period_check:
        await check_transaction_period(db, data.transaction_date)
    return await _build_transaction(data, entries, user_id=user_id, numbers=numbers)


async def save_transaction(
    db: AsyncSession,
    data: TransactionCreate,
    *,
    user_id: str,
    skip_period_check: bool = False,
) -> Transaction:
    """Validate, period-check and write one transaction."""
    transaction = await _prepare_transaction(
        db,
        data,
        user_id=user_id,
        skip_period_check=skip_period_check,
        numbers=_NumberSequence(db),
    )
    async with atomic(db):
        db.add(transaction)

    logger.info(
        "Transaction saved",
        transaction_id=str(transaction.id),
        transaction_number=transaction.transaction_number,
        type=transaction.type.value,
        entry_count=len(transaction.entries),
    )
    return transaction


async def save_transaction_atomic(
    db: AsyncSession,
    data: TransactionCreate,
    *,
    user_id: str,
    on_write: OnWrite | None = None,
    skip_period_check: bool = False,
) -> Transaction:
    """Write a transaction and any dependent changes in one database transaction.

    on_write(db, transaction) runs after the transaction row is flushed and may
    read or modify other rows; if it raises, nothing is committed.
    """
    async with atomic(db):
        transaction = await _prepare_transaction(
            db,
            data,
            user_id=user_id,
            skip_period_check=skip_period_check,
            numbers=_NumberSequence(db),
        )
        db.add(transaction)
        await db.flush()
        if on_write is not None:
            await on_write(db, transaction)

    logger.info(
        "Transaction saved atomically",
        transaction_id=str(transaction.id),
        transaction_number=transaction.transaction_number,
        type=transaction.type.value,
    )
    return transaction


async def save_transaction_batch(
    db: AsyncSession,
    items: Sequence[TransactionCreate],
    *,
    user_id: str,
    skip_period_check: bool = False,
) -> list[Transaction]:
    """Write several transactions together; one invalid item means none are written.

    Every item is validated before any item is period-checked, so a caller
    sees an unbalanced item ahead of a closed period on an earlier one.
    """
    if not items:
        return []

    validated = [await _validated_entries(db, item) for item in items]
    if not skip_period_check:
        for item in items:
            await check_transaction_period(db, item.transaction_date)

    numbers = _NumberSequence(db)
    prepared = [
        await _build_transaction(item, entries, user_id=user_id, numbers=numbers)
        for item, entries in zip(items, validated, strict=True)
    ]
    async with atomic(db):
        db.add_all(prepared)

    logger.info("Transaction batch saved", count=len(prepared))
    return prepared


# =============================================================================
# Posting and voiding
# =============================================================================


async def get_transaction(db: AsyncSession, transaction_id: UUID) -> Transaction:
    transaction = await db.get(Transaction, transaction_id)
    if transaction is None:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
    return transaction


async def apply_entries_to_balances(
    db: AsyncSession, entries: Sequence[LedgerEntry], *, sign: int = 1
) -> None:
    """Move account current_balance by each entry on the account's natural side.

    sign=-1 undoes a previous application. Does not commit.
    """
    account_ids: dict[str, UUID] = {}
    for entry in entries:
        parsed = _parse_uuid(entry.account_id)
        if parsed is None:
            raise AccountNotFoundError(
                f"Entry for {entry.reference or 'unknown account'} has no resolvable account"
            )
        account_ids[entry.account_id] = parsed

    result = await db.execute(select(Account).where(Account.id.in_(set(account_ids.values()))))
    accounts = {account.id: account for account in result.scalars().all()}

    for entry in entries:
        account = accounts.get(account_ids[entry.account_id])
        if account is None:
            raise AccountNotFoundError(f"Account {entry.account_id} not found")
        delta = entry.debit - entry.credit
        if not account.is_debit_normal:
            delta = -delta
        account.current_balance = round_money(account.current_balance + sign * delta)


async def post_transaction(db: AsyncSession, transaction_id: UUID, *, user_id: str) -> Transaction:
    """Post an approved document (or a draft journal entry) to the ledger."""
    transaction = await get_transaction(db, transaction_id)
    can_post = transaction.status is TransactionStatus.APPROVED or (
        transaction.status is TransactionStatus.DRAFT
        and transaction.type is TransactionType.JOURNAL_ENTRY
    )
    if not can_post:
        raise InvalidTransitionError(
            f"Transaction in status {transaction.status.value} cannot be posted"
        )

    entries = entries_of(transaction)
    enforce_double_entry(entries)
    await check_transaction_period(db, transaction.transaction_date)

    async with atomic(db):
        if entries:
            await apply_entries_to_balances(db, entries)
        transaction.status = TransactionStatus.POSTED
        transaction.posted_at = datetime.now(UTC)

    logger.info(
        "Transaction posted",
        transaction_id=str(transaction.id),
        transaction_number=transaction.transaction_number,
        user_id=user_id,
    )
    return transaction


def _with_article(label: str) -> str:
    article = "an" if label[0].lower() in "aeiou" else "a"
    return f"{article} {label.lower()}"


def can_void_transaction(transaction: Transaction) -> tuple[bool, str | None]:
    """Whether a transaction may be voided, with the reason when it may not."""
    label = TYPE_LABELS[transaction.type]
    if transaction.status is TransactionStatus.VOID:
        return False, f"{label} is already voided"
    if transaction.payment_status is PaymentStatus.PAID:
        return False, f"Cannot void {_with_article(label)} that has been fully paid"
    if transaction.payment_status is PaymentStatus.PARTIALLY_PAID:
        return (
            False,
            f"Cannot void {_with_article(label)} with partial payments. Reverse payments first.",
        )
    return True, None


def _mark_void(
    transaction: Transaction, reason: str, user_id: str, reversal: Transaction | None
) -> None:
    transaction.status = TransactionStatus.VOID
    transaction.void_reason = reason
    transaction.voided_at = datetime.now(UTC)
    transaction.voided_by = user_id
    if reversal is not None:
        transaction.is_reversed = True
        transaction.reversal_journal_id = reversal.id


async def void_transaction(
    db: AsyncSession,
    transaction_id: UUID,
    *,
    reason: str,
    user_id: str,
    user_name: str | None = None,
) -> Transaction:
    """Void a transaction; posted ones get a reversing journal that restores balances."""
    if not reason or not reason.strip():
        raise ValidationError("Void reason is required")

    transaction = await get_transaction(db, transaction_id)
    allowed, why = can_void_transaction(transaction)
    if not allowed:
        raise InvalidTransitionError(why)

    entries = entries_of(transaction)
    reversal: Transaction | None = None
    if transaction.status is TransactionStatus.POSTED and entries:
        reversal_entries = [entry.as_reversal() for entry in entries]

        async def _restore_balances(session: AsyncSession, journal: Transaction) -> None:
            await apply_entries_to_balances(session, reversal_entries)
            _mark_void(transaction, reason, user_id, journal)

        reversal = await save_transaction_atomic(
            db,
            TransactionCreate(
                type=TransactionType.JOURNAL_ENTRY,
                transaction_date=date.today(),
                description=f"Reversal of {transaction.transaction_number}: {reason}",
                reference=transaction.transaction_number,
                entries=reversal_entries,
                currency=transaction.currency,
                status=TransactionStatus.POSTED,
                journal_type=JournalType.REVERSING,
                original_journal_id=transaction.id,
            ),
            user_id=user_id,
            on_write=_restore_balances,
        )
    else:
        async with atomic(db):
            _mark_void(transaction, reason, user_id, None)

    logger.info(
        "Transaction voided",
        transaction_id=str(transaction.id),
        transaction_number=transaction.transaction_number,
        reversal_journal_id=str(reversal.id) if reversal else None,
        user_id=user_id,
    )

    label = TYPE_LABELS[transaction.type]
    voided_id = str(transaction.id)
    number = transaction.transaction_number
    details = {
        "reason": reason,
        "reversal_journal_id": str(reversal.id) if reversal else None,
        "total_amount": str(transaction.total_amount or Decimal("0")),
    }
    await run_best_effort_write(
        "audit_log",
        db,
        lambda session: log_audit_event(
            session,
            create_audit_context(user_id, user_name=user_name),
            "TRANSACTION_VOIDED",
            "TRANSACTION",
            voided_id,
            f"Voided {label.lower()} {number}: {reason}",
            entity_name=number,
            severity=AuditSeverity.WARNING,
            details=details,
        ),
        transaction_id=voided_id,
    )
    return transaction
