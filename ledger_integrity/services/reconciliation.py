"""Persisted reconciliation runs and the review queue on top of the matching engine."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.database import atomic
from ledger_integrity.logger import get_logger
from ledger_integrity.models import (
    BankTransaction,
    JournalType,
    MatchType,
    ReconciliationMatch,
    ReconciliationStatus,
    Transaction,
    TransactionStatus,
)
from ledger_integrity.schemas.matching import BatchMatchResult, BatchOutcome, MatchSuggestion
from ledger_integrity.services.auto_matching import (
    AccountingCandidate,
    BankCandidate,
    MatchingConfig,
    batch_auto_match,
    load_matching_config,
)
from ledger_integrity.services.errors import MatchNotFoundError, ReconciliationError

logger = get_logger(__name__)

_SETTLED_STATUSES = (ReconciliationStatus.AUTO_ACCEPTED, ReconciliationStatus.ACCEPTED)
_OPEN_STATUSES = (*_SETTLED_STATUSES, ReconciliationStatus.PENDING_REVIEW)


async def _matched_transaction_ids(db: AsyncSession) -> set[str]:
    result = await db.execute(
        select(ReconciliationMatch.transaction_ids).where(
            ReconciliationMatch.status.in_(_SETTLED_STATUSES)
        )
    )
    return {txn_id for ids in result.scalars().all() for txn_id in ids or ()}


async def _load_bank_transactions(
    db: AsyncSession, bank_account_id: str | None
) -> list[BankTransaction]:
    already_matched = select(ReconciliationMatch.bank_transaction_id).where(
        ReconciliationMatch.status.in_(_OPEN_STATUSES)
    )
    query = (
        select(BankTransaction)
        .where(BankTransaction.is_reconciled.is_(False))
        .where(BankTransaction.id.not_in(already_matched))
        .order_by(BankTransaction.transaction_date, BankTransaction.id)
    )
    if bank_account_id:
        query = query.where(BankTransaction.bank_account_id == bank_account_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def _load_accounting_transactions(db: AsyncSession) -> list[Transaction]:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.status.in_([TransactionStatus.APPROVED, TransactionStatus.POSTED]))
        .where(
            or_(
                Transaction.journal_type.is_(None),
                Transaction.journal_type == JournalType.GENERAL,
            )
        )
        .order_by(Transaction.transaction_date, Transaction.id)
    )
    matched = await _matched_transaction_ids(db)
    return [txn for txn in result.scalars().all() if str(txn.id) not in matched]


def _match_row(suggestion: MatchSuggestion, status: ReconciliationStatus) -> ReconciliationMatch:
    details = suggestion.details
    return ReconciliationMatch(
        bank_transaction_id=UUID(suggestion.bank_transaction_id),
        transaction_ids=list(suggestion.transaction_ids),
        match_type=MatchType.MULTI if len(suggestion.transaction_ids) > 1 else MatchType.SINGLE,
        score=suggestion.score,
        score_breakdown={
            "amount": details.amount_score,
            "date": details.date_score,
            "reference": details.reference_score,
            "description": details.description_score,
        },
        reasons=list(suggestion.reasons),
        status=status,
    )


async def run_auto_matching(
    db: AsyncSession,
    *,
    bank_account_id: str | None = None,
    config: MatchingConfig | None = None,
) -> BatchMatchResult:
    """Match unreconciled bank lines against approved/posted transactions and persist the results.

    Auto-matched lines are marked reconciled; review candidates are stored as
    PENDING_REVIEW. Everything is committed together.
    """
    config = config or load_matching_config()
    bank_rows = await _load_bank_transactions(db, bank_account_id)
    if not bank_rows:
        logger.info("No unreconciled bank transactions", bank_account_id=bank_account_id)
        return BatchMatchResult()

    accounting_rows = await _load_accounting_transactions(db)
    result = batch_auto_match(
        [BankCandidate.from_bank_transaction(row) for row in bank_rows],
        [AccountingCandidate.from_transaction(row) for row in accounting_rows],
        config,
    )

    banks_by_id = {str(row.id): row for row in bank_rows}
    now = datetime.now(UTC)
    async with atomic(db):
        for item in result.items:
            if item.suggestion is None or item.outcome is BatchOutcome.UNMATCHED:
                continue
            if item.outcome is BatchOutcome.AUTO_MATCHED:
                db.add(_match_row(item.suggestion, ReconciliationStatus.AUTO_ACCEPTED))
                bank = banks_by_id[item.bank_transaction_id]
                bank.is_reconciled = True
                bank.reconciled_at = now
            else:
                db.add(_match_row(item.suggestion, ReconciliationStatus.PENDING_REVIEW))

    logger.info(
        "Auto-matching run completed",
        bank_account_id=bank_account_id,
        bank_transactions=result.statistics.total,
        auto_matched=result.statistics.auto_matched,
        review_queued=result.statistics.review_queued,
        unmatched=result.statistics.unmatched,
    )
    return result


async def _pending_match(db: AsyncSession, match_id: UUID) -> ReconciliationMatch:
    match = await db.get(ReconciliationMatch, match_id)
    if match is None:
        raise MatchNotFoundError("Match not found")
    if match.status is not ReconciliationStatus.PENDING_REVIEW:
        raise ReconciliationError(
            f"Only matches pending review can be reviewed (status: {match.status.value})"
        )
    return match


async def _competing_suggestions(
    db: AsyncSession, match: ReconciliationMatch
) -> list[ReconciliationMatch]:
    """Other queued matches that claim any of ``match``'s ledger transactions."""
    claimed = set(match.transaction_ids or ())
    result = await db.execute(
        select(ReconciliationMatch).where(
            ReconciliationMatch.status == ReconciliationStatus.PENDING_REVIEW,
            ReconciliationMatch.id != match.id,
        )
    )
    return [other for other in result.scalars().all() if claimed & set(other.transaction_ids or ())]


async def accept_match(db: AsyncSession, match_id: UUID, *, user_id: str) -> ReconciliationMatch:
    """Accept a queued match and mark its bank transaction reconciled.

    A ledger transaction settles one bank line only. Accepting fails if another
    match already settled any of its transactions, and queued suggestions that
    compete for them are rejected alongside.
    """
    match = await _pending_match(db, match_id)
    bank = await db.get(BankTransaction, match.bank_transaction_id)
    if bank is None:
        raise ReconciliationError("Bank transaction not found")
    if bank.is_reconciled:
        raise ReconciliationError("Bank transaction is already reconciled")

    taken = set(match.transaction_ids or ()) & await _matched_transaction_ids(db)
    if taken:
        raise ReconciliationError(
            f"Transactions already reconciled by another match: {', '.join(sorted(taken))}"
        )

    competing = await _competing_suggestions(db, match)
    now = datetime.now(UTC)
    async with atomic(db):
        match.status = ReconciliationStatus.ACCEPTED
        match.reviewed_by = user_id
        match.reviewed_at = now
        bank.is_reconciled = True
        bank.reconciled_at = now
        for other in competing:
            other.status = ReconciliationStatus.REJECTED
            other.reviewed_by = user_id
            other.reviewed_at = now

    logger.info(
        "Reconciliation match accepted",
        match_id=str(match.id),
        bank_transaction_id=str(bank.id),
        competing_rejected=len(competing),
        user_id=user_id,
    )
    return match


async def reject_match(db: AsyncSession, match_id: UUID, *, user_id: str) -> ReconciliationMatch:
    match = await _pending_match(db, match_id)
    async with atomic(db):
        match.status = ReconciliationStatus.REJECTED
        match.reviewed_by = user_id
        match.reviewed_at = datetime.now(UTC)

    logger.info("Reconciliation match rejected", match_id=str(match.id), user_id=user_id)
    return match


async def get_pending_matches(
    db: AsyncSession, *, limit: int = 50, offset: int = 0
) -> list[ReconciliationMatch]:
    """Matches awaiting review, best score first."""
    result = await db.execute(
        select(ReconciliationMatch)
        .where(ReconciliationMatch.status == ReconciliationStatus.PENDING_REVIEW)
        .order_by(ReconciliationMatch.score.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def count_pending_matches(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count())
        .select_from(ReconciliationMatch)
        .where(ReconciliationMatch.status == ReconciliationStatus.PENDING_REVIEW)
    )
