"""Approval workflow for customer invoices and vendor bills.

DRAFT --submit--> PENDING_APPROVAL --approve--> APPROVED
PENDING_APPROVAL --reject--> DRAFT

The status change and the approval record are committed together. Notifications
and audit entries follow the commit as best-effort side effects; their
outcomes are returned to the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.database import atomic
from ledger_integrity.logger import get_logger
from ledger_integrity.models import (
    NotificationPriority,
    NotificationType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_integrity.schemas.approval import (
    ApprovalAction,
    ApprovalHistory,
    ApprovalRecord,
    AvailableActions,
)
from ledger_integrity.schemas.notification import TaskNotificationCreate
from ledger_integrity.services.audit import create_audit_context, log_audit_event
from ledger_integrity.services.authorization import prevent_self_approval
from ledger_integrity.services.errors import (
    ApprovalValidationError,
    InvalidTransitionError,
    TransactionNotFoundError,
)
from ledger_integrity.services.notifications import (
    complete_task_notifications_by_entity,
    create_task_notification,
)
from ledger_integrity.services.side_effects import SideEffectOutcome, run_best_effort_write

logger = get_logger(__name__)

MAX_ID_LENGTH = 100
MAX_NAME_LENGTH = 200
MAX_COMMENT_LENGTH = 2000


@dataclass(frozen=True)
class TransactionTypeConfig:
    transaction_type: TransactionType
    entity_type: str
    entity_label: str
    counterparty_label: str
    link_url: str
    submitted_category: str
    approved_category: str
    rejected_category: str
    get_display_number: Callable[[Transaction], str]

    @property
    def entity_label_lower(self) -> str:
        return self.entity_label.lower()


TRANSACTION_CONFIGS: dict[TransactionType, TransactionTypeConfig] = {
    TransactionType.CUSTOMER_INVOICE: TransactionTypeConfig(
        transaction_type=TransactionType.CUSTOMER_INVOICE,
        entity_type="INVOICE",
        entity_label="Invoice",
        counterparty_label="Customer",
        link_url="/accounting/invoices",
        submitted_category="INVOICE_SUBMITTED",
        approved_category="INVOICE_APPROVED",
        rejected_category="INVOICE_REJECTED",
        get_display_number=lambda txn: txn.transaction_number,
    ),
    TransactionType.VENDOR_BILL: TransactionTypeConfig(
        transaction_type=TransactionType.VENDOR_BILL,
        entity_type="BILL",
        entity_label="Bill",
        counterparty_label="Vendor",
        link_url="/accounting/bills",
        submitted_category="BILL_SUBMITTED",
        approved_category="BILL_APPROVED",
        rejected_category="BILL_REJECTED",
        get_display_number=lambda txn: txn.vendor_invoice_number or txn.transaction_number,
    ),
}


@dataclass
class ApprovalOutcome:
    """Committed transaction plus the result of each post-commit side effect."""

    transaction: Transaction
    side_effects: list[SideEffectOutcome] = field(default_factory=list)


# =============================================================================
# Input validation
# =============================================================================


def _validate_required(value: str | None, field_name: str, max_length: int) -> None:
    if not value or not isinstance(value, str):
        raise ApprovalValidationError(f"{field_name} is required")
    if not value.strip():
        raise ApprovalValidationError(f"{field_name} cannot be empty")
    if len(value) > max_length:
        raise ApprovalValidationError(
            f"{field_name} exceeds maximum length of {max_length} characters"
        )


def validate_required_id(value: str | None, field_name: str) -> None:
    _validate_required(value, field_name, MAX_ID_LENGTH)


def validate_user_name(value: str | None, field_name: str) -> None:
    _validate_required(value, field_name, MAX_NAME_LENGTH)


def validate_comment(value: str | None, *, required: bool = False) -> None:
    if required and (not value or not value.strip()):
        raise ApprovalValidationError("Comment is required")
    if value and len(value) > MAX_COMMENT_LENGTH:
        raise ApprovalValidationError(
            f"Comment exceeds maximum length of {MAX_COMMENT_LENGTH} characters"
        )


def get_transaction_config(transaction_type: TransactionType) -> TransactionTypeConfig:
    config = TRANSACTION_CONFIGS.get(transaction_type)
    if config is None:
        raise ApprovalValidationError(
            f"Transaction type {transaction_type.value} does not use the approval workflow"
        )
    return config


async def _load(
    db: AsyncSession, config: TransactionTypeConfig, transaction_id: UUID | str
) -> Transaction:
    validate_required_id(
        str(transaction_id) if transaction_id else None, f"{config.entity_label} ID"
    )
    try:
        key = transaction_id if isinstance(transaction_id, UUID) else UUID(transaction_id)
    except ValueError:
        raise TransactionNotFoundError(f"{config.entity_label} not found") from None

    transaction = await db.get(Transaction, key)
    if transaction is None or transaction.type is not config.transaction_type:
        raise TransactionNotFoundError(f"{config.entity_label} not found")
    return transaction


def _require_status(
    transaction: Transaction,
    expected: TransactionStatus,
    verb: str,
    config: TransactionTypeConfig,
) -> None:
    if transaction.status is not expected:
        raise InvalidTransitionError(
            f"Cannot {verb} {config.entity_label_lower} with status: {transaction.status.value}"
        )


def _append_record(
    transaction: Transaction,
    action: ApprovalAction,
    user_id: str,
    user_name: str,
    comment: str | None,
    now: datetime,
) -> ApprovalHistory:
    history = ApprovalHistory.from_json(transaction.approval_history).append(
        ApprovalRecord(
            action=action,
            user_id=user_id,
            user_name=user_name,
            timestamp=now,
            comment=comment or None,
        )
    )
    # Reassign so the JSON column is flagged dirty
    transaction.approval_history = history.to_json()
    return history


# =============================================================================
# Side effects
# =============================================================================


async def _notify(
    db: AsyncSession,
    payload: TaskNotificationCreate,
    transaction: Transaction,
) -> SideEffectOutcome:
    return await run_best_effort_write(
        "task_notification",
        db,
        lambda session: create_task_notification(session, payload),
        transaction_id=str(transaction.id),
        recipient_id=payload.user_id,
        category=payload.category,
    )


async def _audit(
    db: AsyncSession,
    config: TransactionTypeConfig,
    transaction: Transaction,
    action: str,
    description: str,
    *,
    user_id: str,
    user_name: str,
    comment: str | None,
) -> SideEffectOutcome:
    transaction_id = str(transaction.id)
    entity_name = config.get_display_number(transaction)
    details = {"status": transaction.status.value, "comment": comment}
    return await run_best_effort_write(
        "audit_log",
        db,
        lambda session: log_audit_event(
            session,
            create_audit_context(user_id, user_name=user_name),
            action,
            config.entity_type,
            transaction_id,
            description,
            entity_name=entity_name,
            details=details,
        ),
        transaction_id=transaction_id,
    )


async def _close_review_tasks(
    db: AsyncSession, config: TransactionTypeConfig, transaction: Transaction
) -> SideEffectOutcome:
    transaction_id = str(transaction.id)
    return await run_best_effort_write(
        "complete_task_notifications",
        db,
        lambda session: complete_task_notifications_by_entity(
            session, config.entity_type, transaction_id
        ),
        transaction_id=transaction_id,
    )


# =============================================================================
# Transitions
# =============================================================================


async def submit_for_approval(
    db: AsyncSession,
    transaction_type: TransactionType,
    transaction_id: UUID | str,
    *,
    approver_id: str,
    approver_name: str,
    user_id: str,
    user_name: str,
    comments: str | None = None,
) -> ApprovalOutcome:
    """Move a draft to PENDING_APPROVAL and assign it to approver_id."""
    config = get_transaction_config(transaction_type)
    validate_required_id(approver_id, "Approver ID")
    validate_user_name(approver_name, "Approver name")
    validate_required_id(user_id, "User ID")
    validate_user_name(user_name, "User name")
    validate_comment(comments)

    transaction = await _load(db, config, transaction_id)
    _require_status(transaction, TransactionStatus.DRAFT, "submit", config)

    now = datetime.now(UTC)
    async with atomic(db):
        _append_record(transaction, ApprovalAction.SUBMITTED, user_id, user_name, comments, now)
        transaction.status = TransactionStatus.PENDING_APPROVAL
        transaction.submitted_at = now
        transaction.submitted_by_id = user_id
        transaction.submitted_by_name = user_name
        transaction.assigned_approver_id = approver_id
        transaction.assigned_approver_name = approver_name

    display_number = config.get_display_number(transaction)
    logger.info(
        "Transaction submitted for approval",
        entity_type=config.entity_type,
        transaction_id=str(transaction.id),
        user_id=user_id,
        approver_id=approver_id,
        display_number=display_number,
    )

    counterparty = transaction.entity_name or config.counterparty_label.lower()
    message = f"{user_name} submitted {config.entity_label_lower} for {counterparty} for your review"
    if comments:
        message = f"{message}: {comments}"

    outcome = ApprovalOutcome(transaction=transaction)
    outcome.side_effects.append(
        await _notify(
            db,
            TaskNotificationCreate(
                type=NotificationType.ACTIONABLE,
                category=config.submitted_category,
                user_id=approver_id,
                assigned_by=user_id,
                assigned_by_name=user_name,
                title=f"Review {config.entity_label} {display_number}",
                message=message,
                entity_type=config.entity_type,
                entity_id=str(transaction.id),
                link_url=config.link_url,
                priority=NotificationPriority.HIGH,
                auto_completable=True,
            ),
            transaction,
        )
    )
    outcome.side_effects.append(
        await _audit(
            db,
            config,
            transaction,
            config.submitted_category,
            f"{config.entity_label} {display_number} submitted for approval to {approver_name}",
            user_id=user_id,
            user_name=user_name,
            comment=comments,
        )
    )
    return outcome


async def approve_transaction(
    db: AsyncSession,
    transaction_type: TransactionType,
    transaction_id: UUID | str,
    *,
    user_id: str,
    user_name: str,
    comments: str | None = None,
) -> ApprovalOutcome:
    """Approve a pending document. The submitter may not approve their own submission."""
    config = get_transaction_config(transaction_type)
    validate_required_id(user_id, "User ID")
    validate_user_name(user_name, "User name")
    validate_comment(comments)

    transaction = await _load(db, config, transaction_id)
    _require_status(transaction, TransactionStatus.PENDING_APPROVAL, "approve", config)
    prevent_self_approval(
        transaction.submitted_by_id, user_id, f"approve {config.entity_label_lower}"
    )

    now = datetime.now(UTC)
    async with atomic(db):
        _append_record(transaction, ApprovalAction.APPROVED, user_id, user_name, comments, now)
        transaction.status = TransactionStatus.APPROVED
        transaction.approved_by_id = user_id
        transaction.approved_by_name = user_name
        transaction.approved_at = now

    display_number = config.get_display_number(transaction)
    logger.info(
        "Transaction approved",
        entity_type=config.entity_type,
        transaction_id=str(transaction.id),
        user_id=user_id,
        display_number=display_number,
    )

    outcome = ApprovalOutcome(transaction=transaction)
    outcome.side_effects.append(await _close_review_tasks(db, config, transaction))

    if transaction.submitted_by_id:
        counterparty = transaction.entity_name or config.counterparty_label.lower()
        if comments:
            message = f"Your {config.entity_label_lower} was approved by {user_name}: {comments}"
        else:
            message = (
                f"Your {config.entity_label_lower} for {counterparty} was approved by {user_name}"
            )
        outcome.side_effects.append(
            await _notify(
                db,
                TaskNotificationCreate(
                    type=NotificationType.INFORMATIONAL,
                    category=config.approved_category,
                    user_id=transaction.submitted_by_id,
                    assigned_by=user_id,
                    assigned_by_name=user_name,
                    title=f"{config.entity_label} {display_number} Approved",
                    message=message,
                    entity_type=config.entity_type,
                    entity_id=str(transaction.id),
                    link_url=config.link_url,
                    priority=NotificationPriority.MEDIUM,
                ),
                transaction,
            )
        )

    outcome.side_effects.append(
        await _audit(
            db,
            config,
            transaction,
            config.approved_category,
            f"{config.entity_label} {display_number} approved",
            user_id=user_id,
            user_name=user_name,
            comment=comments,
        )
    )
    return outcome


async def reject_transaction(
    db: AsyncSession,
    transaction_type: TransactionType,
    transaction_id: UUID | str,
    *,
    user_id: str,
    user_name: str,
    comments: str | None,
) -> ApprovalOutcome:
    """Return a pending document to DRAFT. A comment is mandatory."""
    config = get_transaction_config(transaction_type)
    validate_required_id(user_id, "User ID")
    validate_user_name(user_name, "User name")
    validate_comment(comments, required=True)

    transaction = await _load(db, config, transaction_id)
    _require_status(transaction, TransactionStatus.PENDING_APPROVAL, "reject", config)

    now = datetime.now(UTC)
    async with atomic(db):
        _append_record(transaction, ApprovalAction.REJECTED, user_id, user_name, comments, now)
        transaction.status = TransactionStatus.DRAFT
        transaction.rejection_reason = comments

    display_number = config.get_display_number(transaction)
    logger.info(
        "Transaction rejected",
        entity_type=config.entity_type,
        transaction_id=str(transaction.id),
        user_id=user_id,
        display_number=display_number,
    )

    outcome = ApprovalOutcome(transaction=transaction)
    outcome.side_effects.append(await _close_review_tasks(db, config, transaction))

    if transaction.submitted_by_id:
        outcome.side_effects.append(
            await _notify(
                db,
                TaskNotificationCreate(
                    type=NotificationType.INFORMATIONAL,
                    category=config.rejected_category,
                    user_id=transaction.submitted_by_id,
                    assigned_by=user_id,
                    assigned_by_name=user_name,
                    title=f"{config.entity_label} {display_number} Rejected",
                    message=(
                        f"Your {config.entity_label_lower} was rejected by {user_name}: {comments}"
                    ),
                    entity_type=config.entity_type,
                    entity_id=str(transaction.id),
                    link_url=config.link_url,
                    priority=NotificationPriority.HIGH,
                ),
                transaction,
            )
        )

    outcome.side_effects.append(
        await _audit(
            db,
            config,
            transaction,
            config.rejected_category,
            f"{config.entity_label} {display_number} rejected: {comments}",
            user_id=user_id,
            user_name=user_name,
            comment=comments,
        )
    )
    return outcome


def get_available_actions(
    transaction_type: TransactionType,
    status: TransactionStatus,
    *,
    is_assigned_approver: bool,
    can_manage: bool,
) -> AvailableActions:
    """Actions the current user may take on a document. No I/O."""
    is_draft = status is TransactionStatus.DRAFT
    can_decide = status is TransactionStatus.PENDING_APPROVAL and is_assigned_approver and can_manage
    return AvailableActions(
        can_edit=is_draft and can_manage,
        can_delete=is_draft and can_manage,
        can_submit=is_draft and can_manage,
        can_approve=can_decide,
        can_reject=can_decide,
        can_record_payment=(
            transaction_type is TransactionType.VENDOR_BILL
            and status is TransactionStatus.APPROVED
            and can_manage
        ),
    )
