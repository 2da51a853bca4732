"""Persisted reconciliation match schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from ledger_integrity.models import MatchType, ReconciliationStatus
from ledger_integrity.schemas.base import BaseResponse


class ReconciliationRunRequest(BaseModel):
    bank_account_id: str | None = Field(default=None, max_length=100)


class ReconciliationMatchResponse(BaseResponse):
    id: UUID
    bank_transaction_id: UUID
    transaction_ids: list[str]
    match_type: MatchType
    score: float
    score_breakdown: dict[str, float]
    reasons: list[str]
    status: ReconciliationStatus
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
