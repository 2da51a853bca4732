"""Year-end closing API router."""

from uuid import UUID

from fastapi import APIRouter

from ledger_integrity.auth import actor_name
from ledger_integrity.deps import CurrentUser, DbSession
from ledger_integrity.schemas import (
    ClosingPreview,
    ClosingReadiness,
    ClosingResult,
    ExecuteClosingRequest,
    ReverseClosingRequest,
    ReversalResult,
    YearEndClosingEntryResponse,
)
from ledger_integrity.services.authorization import PermissionFlag, require_permission
from ledger_integrity.services.errors import LedgerError
from ledger_integrity.services.year_end_closing import (
    check_year_end_closing_readiness,
    execute_year_end_closing,
    get_year_end_closing_history,
    preview_year_end_closing,
    reverse_year_end_closing,
)
from ledger_integrity.utils.exceptions import raise_bad_request, raise_for_ledger_error

router = APIRouter(prefix="/year-end", tags=["year-end"])


@router.get("/history", response_model=list[YearEndClosingEntryResponse])
async def history(
    db: DbSession, user: CurrentUser, fiscal_year_id: UUID | None = None
) -> list[YearEndClosingEntryResponse]:
    entries = await get_year_end_closing_history(db, fiscal_year_id)
    return [YearEndClosingEntryResponse.model_validate(e) for e in entries]


@router.get("/{fiscal_year_id}/readiness", response_model=ClosingReadiness)
async def readiness(fiscal_year_id: UUID, db: DbSession, user: CurrentUser) -> ClosingReadiness:
    return await check_year_end_closing_readiness(db, fiscal_year_id)


@router.get("/{fiscal_year_id}/preview", response_model=ClosingPreview)
async def preview(fiscal_year_id: UUID, db: DbSession, user: CurrentUser) -> ClosingPreview:
    """Closing entries that would be posted, without writing anything."""
    try:
        return await preview_year_end_closing(db, fiscal_year_id)
    except LedgerError as e:
        raise_for_ledger_error(e)


@router.post("/{fiscal_year_id}/execute", response_model=ClosingResult)
async def execute(
    fiscal_year_id: UUID,
    request: ExecuteClosingRequest,
    db: DbSession,
    user: CurrentUser,
) -> ClosingResult:
    try:
        require_permission(
            user.permissions, PermissionFlag.ADMIN, str(user.id), "execute year-end closing"
        )
        return await execute_year_end_closing(
            db,
            fiscal_year_id,
            user_id=str(user.id),
            user_name=actor_name(user),
            closing_date=request.closing_date,
        )
    except LedgerError as e:
        raise_for_ledger_error(e)


@router.post("/closings/{closing_entry_id}/reverse", response_model=ReversalResult)
async def reverse(
    closing_entry_id: UUID,
    request: ReverseClosingRequest,
    db: DbSession,
    user: CurrentUser,
) -> ReversalResult:
    """Undo a year-end close and reopen the fiscal year."""
    if not request.reason.strip():
        raise_bad_request("Reversal reason is required")
    try:
        require_permission(
            user.permissions, PermissionFlag.ADMIN, str(user.id), "reverse year-end closing"
        )
        return await reverse_year_end_closing(
            db,
            closing_entry_id,
            user_id=str(user.id),
            user_name=actor_name(user),
            reason=request.reason,
        )
    except LedgerError as e:
        raise_for_ledger_error(e)
