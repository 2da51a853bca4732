"""Transaction API router: create, validate, approve, post and void."""

from uuid import UUID

from fastapi import APIRouter, status

from ledger_integrity.auth import actor_name
from ledger_integrity.deps import CurrentUser, DbSession
from ledger_integrity.schemas import (
    ApprovalDecisionRequest,
    AuditLogResponse,
    AvailableActions,
    SubmitForApprovalRequest,
    TransactionCreate,
    TransactionResponse,
    ValidateEntriesRequest,
    ValidateEntriesResponse,
    VoidTransactionRequest,
)
from ledger_integrity.services.approval import (
    TRANSACTION_CONFIGS,
    approve_transaction,
    get_available_actions,
    reject_transaction,
    submit_for_approval,
)
from ledger_integrity.services.audit import get_entity_audit_trail
from ledger_integrity.services.authorization import (
    PermissionFlag,
    has_permission,
    require_permission,
)
from ledger_integrity.services.errors import LedgerError
from ledger_integrity.services.ledger_validator import ledger_display_rows, validate_ledger_entries
from ledger_integrity.services.transactions import (
    get_transaction,
    post_transaction,
    save_transaction,
    void_transaction,
)
from ledger_integrity.utils.exceptions import raise_for_ledger_error

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreate, db: DbSession, user: CurrentUser
) -> TransactionResponse:
    """Create a transaction. Entries must balance and the period must be open."""
    try:
        require_permission(
            user.permissions, PermissionFlag.MANAGE_ACCOUNTING, str(user.id), "create transactions"
        )
        transaction = await save_transaction(db, data, user_id=str(user.id))
    except LedgerError as e:
        raise_for_ledger_error(e)
    return TransactionResponse.model_validate(transaction)


@router.post("/validate", response_model=ValidateEntriesResponse)
async def validate_entries(
    request: ValidateEntriesRequest, user: CurrentUser
) -> ValidateEntriesResponse:
    """Dry-run double-entry validation; nothing is written."""
    result = validate_ledger_entries(request.entries)
    return ValidateEntriesResponse(
        **result.model_dump(), rows=ledger_display_rows(request.entries)
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction_detail(
    transaction_id: UUID, db: DbSession, user: CurrentUser
) -> TransactionResponse:
    try:
        transaction = await get_transaction(db, transaction_id)
    except LedgerError as e:
        raise_for_ledger_error(e)
    return TransactionResponse.model_validate(transaction)


@router.get("/{transaction_id}/actions", response_model=AvailableActions)
async def get_transaction_actions(
    transaction_id: UUID, db: DbSession, user: CurrentUser
) -> AvailableActions:
    """Which workflow buttons the current user may use."""
    try:
        transaction = await get_transaction(db, transaction_id)
    except LedgerError as e:
        raise_for_ledger_error(e)
    return get_available_actions(
        transaction.type,
        transaction.status,
        is_assigned_approver=transaction.assigned_approver_id == str(user.id),
        can_manage=has_permission(user.permissions, PermissionFlag.MANAGE_ACCOUNTING),
    )


@router.get("/{transaction_id}/audit", response_model=list[AuditLogResponse])
async def get_transaction_audit_trail(
    transaction_id: UUID, db: DbSession, user: CurrentUser
) -> list[AuditLogResponse]:
    """Approval and void events recorded for a transaction, oldest first."""
    try:
        transaction = await get_transaction(db, transaction_id)
    except LedgerError as e:
        raise_for_ledger_error(e)
    entity_types = ["TRANSACTION"]
    if transaction.type in TRANSACTION_CONFIGS:
        entity_types.append(TRANSACTION_CONFIGS[transaction.type].entity_type)
    rows = await get_entity_audit_trail(db, entity_types, str(transaction.id))
    return [AuditLogResponse.model_validate(row) for row in rows]


@router.post("/{transaction_id}/submit", response_model=TransactionResponse)
async def submit_transaction(
    transaction_id: UUID,
    request: SubmitForApprovalRequest,
    db: DbSession,
    user: CurrentUser,
) -> TransactionResponse:
    try:
        require_permission(
            user.permissions, PermissionFlag.MANAGE_ACCOUNTING, str(user.id), "submit transactions"
        )
        transaction = await get_transaction(db, transaction_id)
        outcome = await submit_for_approval(
            db,
            transaction.type,
            transaction_id,
            approver_id=request.approver_id,
            approver_name=request.approver_name,
            user_id=str(user.id),
            user_name=actor_name(user),
            comments=request.comments,
        )
    except LedgerError as e:
        raise_for_ledger_error(e)
    return TransactionResponse.model_validate(outcome.transaction)


@router.post("/{transaction_id}/approve", response_model=TransactionResponse)
async def approve(
    transaction_id: UUID,
    request: ApprovalDecisionRequest,
    db: DbSession,
    user: CurrentUser,
) -> TransactionResponse:
    try:
        require_permission(
            user.permissions,
            PermissionFlag.APPROVE_TRANSACTIONS,
            str(user.id),
            "approve transactions",
        )
        transaction = await get_transaction(db, transaction_id)
        outcome = await approve_transaction(
            db,
            transaction.type,
            transaction_id,
            user_id=str(user.id),
            user_name=actor_name(user),
            comments=request.comments,
        )
    except LedgerError as e:
        raise_for_ledger_error(e)
    return TransactionResponse.model_validate(outcome.transaction)


@router.post("/{transaction_id}/reject", response_model=TransactionResponse)
async def reject(
    transaction_id: UUID,
    request: ApprovalDecisionRequest,
    db: DbSession,
    user: CurrentUser,
) -> TransactionResponse:
    try:
        require_permission(
            user.permissions,
            PermissionFlag.APPROVE_TRANSACTIONS,
            str(user.id),
            "reject transactions",
        )
        transaction = await get_transaction(db, transaction_id)
        outcome = await reject_transaction(
            db,
            transaction.type,
            transaction_id,
            user_id=str(user.id),
            user_name=actor_name(user),
            comments=request.comments,
        )
    except LedgerError as e:
        raise_for_ledger_error(e)
    return TransactionResponse.model_validate(outcome.transaction)


@router.post("/{transaction_id}/post", response_model=TransactionResponse)
async def post_to_ledger(
    transaction_id: UUID, db: DbSession, user: CurrentUser
) -> TransactionResponse:
    """Post to the ledger and move account balances."""
    try:
        require_permission(
            user.permissions, PermissionFlag.MANAGE_ACCOUNTING, str(user.id), "post transactions"
        )
        transaction = await post_transaction(db, transaction_id, user_id=str(user.id))
    except LedgerError as e:
        raise_for_ledger_error(e)
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/void", response_model=TransactionResponse)
async def void_document(
    transaction_id: UUID,
    request: VoidTransactionRequest,
    db: DbSession,
    user: CurrentUser,
) -> TransactionResponse:
    """Void a transaction; posted ones are reversed with a journal entry."""
    try:
        require_permission(
            user.permissions, PermissionFlag.MANAGE_ACCOUNTING, str(user.id), "void transactions"
        )
        transaction = await void_transaction(
            db,
            transaction_id,
            reason=request.reason,
            user_id=str(user.id),
            user_name=actor_name(user),
        )
    except LedgerError as e:
        raise_for_ledger_error(e)
    return TransactionResponse.model_validate(transaction)
