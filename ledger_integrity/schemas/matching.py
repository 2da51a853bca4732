"""Auto-matching results. Derived values only; nothing here is persisted as-is."""

import enum
from decimal import Decimal

from pydantic import BaseModel, Field


class MatchConfidence(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class MatchDetails(BaseModel):
    # Factor scores are in points (0..weight), not monetary values.
    amount_score: float = 0.0
    date_score: float = 0.0
    reference_score: float = 0.0
    description_score: float = 0.0
    date_variance_days: int = 0
    description_similarity: float = 0.0
    amount_difference: Decimal = Decimal("0")


class MatchSuggestion(BaseModel):
    bank_transaction_id: str
    transaction_ids: list[str]
    score: float = Field(ge=0, le=100)
    confidence: MatchConfidence
    reasons: list[str] = Field(default_factory=list)
    details: MatchDetails


class MultiTransactionMatch(MatchSuggestion):
    total_amount: Decimal


class BatchOutcome(str, enum.Enum):
    AUTO_MATCHED = "AUTO_MATCHED"
    REVIEW = "REVIEW"
    UNMATCHED = "UNMATCHED"


class BatchMatchItem(BaseModel):
    bank_transaction_id: str
    outcome: BatchOutcome
    suggestion: MatchSuggestion | None = None


class MatchStatistics(BaseModel):
    total: int = 0
    auto_matched: int = 0
    review_queued: int = 0
    unmatched: int = 0
    average_score: float = 0.0


class BatchMatchResult(BaseModel):
    items: list[BatchMatchItem] = Field(default_factory=list)
    statistics: MatchStatistics = Field(default_factory=MatchStatistics)


class ConfidenceBreakdown(BaseModel):
    total: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    average_score: float = 0.0
