"""Bank reconciliation API router."""

from uuid import UUID

from fastapi import APIRouter, Query

from ledger_integrity.deps import CurrentUser, DbSession
from ledger_integrity.models import User
from ledger_integrity.schemas import (
    BatchMatchResult,
    ListResponse,
    ReconciliationMatchResponse,
    ReconciliationRunRequest,
)
from ledger_integrity.services.authorization import PermissionFlag, require_permission
from ledger_integrity.services.errors import LedgerError
from ledger_integrity.services.reconciliation import (
    accept_match,
    count_pending_matches,
    get_pending_matches,
    reject_match,
    run_auto_matching,
)
from ledger_integrity.utils.exceptions import raise_for_ledger_error

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


def _require_reconcile(user: User, operation: str) -> None:
    require_permission(user.permissions, PermissionFlag.RECONCILE_ACCOUNTS, str(user.id), operation)


@router.post("/run", response_model=BatchMatchResult)
async def run_matching(
    request: ReconciliationRunRequest, db: DbSession, user: CurrentUser
) -> BatchMatchResult:
    """Score unreconciled bank lines, auto-accept strong matches and queue the rest."""
    try:
        _require_reconcile(user, "run reconciliation")
        return await run_auto_matching(db, bank_account_id=request.bank_account_id)
    except LedgerError as e:
        raise_for_ledger_error(e)


@router.get("/pending", response_model=ListResponse[ReconciliationMatchResponse])
async def list_pending(
    db: DbSession,
    user: CurrentUser,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ListResponse[ReconciliationMatchResponse]:
    """Review queue page; total counts every pending match."""
    matches = await get_pending_matches(db, limit=limit, offset=offset)
    return ListResponse[ReconciliationMatchResponse](
        items=[ReconciliationMatchResponse.model_validate(m) for m in matches],
        total=await count_pending_matches(db),
    )


@router.post("/matches/{match_id}/accept", response_model=ReconciliationMatchResponse)
async def accept(match_id: UUID, db: DbSession, user: CurrentUser) -> ReconciliationMatchResponse:
    try:
        _require_reconcile(user, "accept reconciliation matches")
        match = await accept_match(db, match_id, user_id=str(user.id))
    except LedgerError as e:
        raise_for_ledger_error(e)
    return ReconciliationMatchResponse.model_validate(match)


@router.post("/matches/{match_id}/reject", response_model=ReconciliationMatchResponse)
async def reject(match_id: UUID, db: DbSession, user: CurrentUser) -> ReconciliationMatchResponse:
    try:
        _require_reconcile(user, "reject reconciliation matches")
        match = await reject_match(db, match_id, user_id=str(user.id))
    except LedgerError as e:
        raise_for_ledger_error(e)
    return ReconciliationMatchResponse.model_validate(match)
