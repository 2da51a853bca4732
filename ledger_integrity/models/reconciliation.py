"""Reconciliation match models."""

import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ledger_integrity.database import Base
from ledger_integrity.models.base import JSONType, TimestampMixin, UUIDMixin, enum_type


class ReconciliationStatus(str, enum.Enum):
    """Match status for reconciliation results."""

    AUTO_ACCEPTED = "AUTO_ACCEPTED"
    PENDING_REVIEW = "PENDING_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class MatchType(str, enum.Enum):
    SINGLE = "SINGLE"
    MULTI = "MULTI"


class ReconciliationMatch(Base, UUIDMixin, TimestampMixin):
    """Match record between a bank transaction and one or more accounting transactions."""

    __tablename__ = "reconciliation_matches"

    bank_transaction_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bank_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_ids: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    match_type: Mapped[MatchType] = mapped_column(
        enum_type(MatchType, "match_type_enum"), nullable=False, default=MatchType.SINGLE
    )
    # Scores are non-monetary; floats are acceptable for display/analysis.
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    score_breakdown: Mapped[dict[str, float]] = mapped_column(JSONType, nullable=False, default=dict)
    reasons: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[ReconciliationStatus] = mapped_column(
        enum_type(ReconciliationStatus, "reconciliation_status_enum"),
        nullable=False,
        default=ReconciliationStatus.PENDING_REVIEW,
        index=True,
    )
    reviewed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
