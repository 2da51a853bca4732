"""Bank reconciliation auto-matching engine.

Pure scoring over plain candidate values; nothing here touches the database.
A match score is the sum of four factor scores (amount, date, reference,
description), each capped at its configured weight, so the total never exceeds
the sum of the weights.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from itertools import combinations
from pathlib import Path

import yaml

from ledger_integrity.config import settings
from ledger_integrity.logger import get_logger, log_timing
from ledger_integrity.models import BankTransaction, Transaction
from ledger_integrity.schemas.matching import (
    BatchMatchItem,
    BatchMatchResult,
    BatchOutcome,
    ConfidenceBreakdown,
    MatchConfidence,
    MatchDetails,
    MatchStatistics,
    MatchSuggestion,
    MultiTransactionMatch,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchingConfig:
    """Weights, tolerances and thresholds for match scoring."""

    amount_weight: float = 40.0
    date_weight: float = 30.0
    reference_weight: float = 20.0
    description_weight: float = 10.0
    amount_tolerance_fixed: Decimal = Decimal("1.00")
    amount_tolerance_percent: Decimal = Decimal("0.01")
    # Exact-date classification and the multi-match candidate window
    date_tolerance_days: int = 7
    # Date score decays linearly to zero over this many days
    date_scoring_window_days: int = 15
    enable_description_matching: bool = True
    enable_multi_transaction_matching: bool = True
    minimum_match_score: float = 50.0
    high_confidence_threshold: float = 80.0
    medium_confidence_threshold: float = 65.0
    max_combination_size: int = 5
    max_combination_candidates: int = 10

    @property
    def max_score(self) -> float:
        return (
            self.amount_weight + self.date_weight + self.reference_weight + self.description_weight
        )


DEFAULT_CONFIG = MatchingConfig()

_ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "MATCHING_MINIMUM_SCORE": ("minimum_match_score", float),
    "MATCHING_HIGH_CONFIDENCE_THRESHOLD": ("high_confidence_threshold", float),
    "MATCHING_MEDIUM_CONFIDENCE_THRESHOLD": ("medium_confidence_threshold", float),
    "MATCHING_DATE_TOLERANCE_DAYS": ("date_tolerance_days", int),
}

_config_cache: MatchingConfig | None = None


def _config_path() -> Path:
    if settings.matching_config_path:
        return Path(settings.matching_config_path)
    return Path(__file__).resolve().parents[2] / "config" / "matching.yaml"


def _config_from_yaml(raw: dict, base: MatchingConfig) -> MatchingConfig:
    scoring = raw.get("scoring", {})
    weights = scoring.get("weights", {})
    thresholds = scoring.get("thresholds", {})
    tolerances = scoring.get("tolerances", {})
    multi = raw.get("multi_transaction", {})
    description = raw.get("description_matching", {})

    return MatchingConfig(
        amount_weight=float(weights.get("amount", base.amount_weight)),
        date_weight=float(weights.get("date", base.date_weight)),
        reference_weight=float(weights.get("reference", base.reference_weight)),
        description_weight=float(weights.get("description", base.description_weight)),
        amount_tolerance_fixed=Decimal(
            str(tolerances.get("amount_fixed", base.amount_tolerance_fixed))
        ),
        amount_tolerance_percent=Decimal(
            str(tolerances.get("amount_percent", base.amount_tolerance_percent))
        ),
        date_tolerance_days=int(tolerances.get("date_days", base.date_tolerance_days)),
        date_scoring_window_days=int(
            tolerances.get("date_scoring_window_days", base.date_scoring_window_days)
        ),
        enable_description_matching=bool(
            description.get("enabled", base.enable_description_matching)
        ),
        enable_multi_transaction_matching=bool(
            multi.get("enabled", base.enable_multi_transaction_matching)
        ),
        minimum_match_score=float(thresholds.get("minimum", base.minimum_match_score)),
        high_confidence_threshold=float(
            thresholds.get("high_confidence", base.high_confidence_threshold)
        ),
        medium_confidence_threshold=float(
            thresholds.get("medium_confidence", base.medium_confidence_threshold)
        ),
        max_combination_size=int(multi.get("max_combination_size", base.max_combination_size)),
        max_combination_candidates=int(
            multi.get("max_candidates", base.max_combination_candidates)
        ),
    )


def load_matching_config(force_reload: bool = False) -> MatchingConfig:
    """Load matching configuration from YAML, then apply MATCHING_* env overrides.

    Caches the result to avoid repeated disk I/O. A missing file means the
    defaults; an unreadable one is logged and the defaults are used.
    """
    global _config_cache
    if _config_cache is not None and not force_reload:
        return _config_cache

    config = DEFAULT_CONFIG
    config_path = _config_path()
    if config_path.exists():
        try:
            raw = yaml.safe_load(config_path.read_text()) or {}
            config = _config_from_yaml(raw, config)
        except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
            logger.warning(
                "Failed to load matching config - using defaults",
                config_path=str(config_path),
                error=str(e),
                error_type=type(e).__name__,
            )

    for env_name, (field_name, cast) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config = replace(config, **{field_name: cast(value)})

    _config_cache = config
    return config


# =============================================================================
# Candidates
# =============================================================================


@dataclass(frozen=True)
class MatchCandidate:
    id: str
    amount: Decimal
    date: date
    description: str = ""
    reference: str | None = None
    cheque_number: str | None = None


class BankCandidate(MatchCandidate):
    """Bank statement side of a match."""

    @classmethod
    def from_bank_transaction(cls, txn: BankTransaction) -> BankCandidate:
        return cls(
            id=str(txn.id),
            amount=abs(txn.amount),
            date=txn.transaction_date,
            description=txn.description or "",
            reference=txn.reference,
            cheque_number=txn.cheque_number,
        )


class AccountingCandidate(MatchCandidate):
    """Ledger side of a match."""

    @classmethod
    def from_transaction(cls, txn: Transaction) -> AccountingCandidate:
        return cls(
            id=str(txn.id),
            amount=abs(txn.total_amount),
            date=txn.transaction_date,
            description=txn.description or "",
            reference=txn.reference or txn.vendor_invoice_number or txn.transaction_number,
            cheque_number=txn.cheque_number,
        )


# =============================================================================
# Text similarity
# =============================================================================

_STOP_WORDS = frozenset(
    {
        "the", "and", "but", "for", "with", "from", "was", "are", "were", "been",
        "have", "has", "had", "does", "did", "will", "would", "could", "should",
        "may", "might", "can",
    }
)  # fmt: skip


def normalize_text(value: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    cleaned = re.sub(r"[^a-z0-9]+", " ", value.lower()).strip()
    return re.sub(r"\s+", " ", cleaned)


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    """1.0 for identical strings down to 0.0 for entirely different ones."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def extract_keywords(text: str) -> set[str]:
    return {
        word
        for word in normalize_text(text).split()
        if len(word) >= 3 and word not in _STOP_WORDS
    }


def keyword_similarity(a: str, b: str) -> float:
    """Jaccard overlap of keyword sets."""
    keywords_a = extract_keywords(a)
    keywords_b = extract_keywords(b)
    union = keywords_a | keywords_b
    if not union:
        return 0.0
    return len(keywords_a & keywords_b) / len(union)


def description_similarity(a: str | None, b: str | None) -> float:
    if not a or not b:
        return 0.0
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)
    if not norm_a or not norm_b:
        return 0.0
    return 0.5 * levenshtein_similarity(norm_a, norm_b) + 0.5 * keyword_similarity(a, b)


# =============================================================================
# Factor scores
# =============================================================================


def amount_within_tolerance(expected: Decimal, actual: Decimal, config: MatchingConfig) -> bool:
    difference = abs(expected - actual)
    return (
        difference <= config.amount_tolerance_fixed
        or difference <= abs(expected) * config.amount_tolerance_percent
    )


def score_amount(
    bank_amount: Decimal, accounting_amount: Decimal, config: MatchingConfig
) -> tuple[float, str | None]:
    """Full weight within the fixed tolerance, a discounted score within the percent one."""
    difference = abs(abs(bank_amount) - abs(accounting_amount))
    if difference <= config.amount_tolerance_fixed:
        return config.amount_weight, "Exact amount match"

    percent_tolerance = abs(bank_amount) * config.amount_tolerance_percent
    if percent_tolerance > 0 and difference <= percent_tolerance:
        fraction = 1.0 - 0.5 * float(difference / percent_tolerance)
        return (
            config.amount_weight * fraction,
            f"Close amount match (variance: {difference:.2f})",
        )
    return 0.0, None


def score_date(
    bank_date: date, accounting_date: date, config: MatchingConfig
) -> tuple[float, int, str | None]:
    """Full weight on the same day, then linear decay across the scoring window."""
    days = abs((bank_date - accounting_date).days)
    if days == 0:
        return config.date_weight, 0, "Same date"
    window = max(config.date_scoring_window_days, 1)
    score = max(0.0, config.date_weight * (1.0 - days / window))
    if score == 0:
        return 0.0, days, None
    return score, days, f"Date within {days} days"


def _clean_ref(value: str | None) -> str:
    return (value or "").strip().lower()


def score_reference(
    bank: MatchCandidate, accounting: MatchCandidate, config: MatchingConfig
) -> tuple[float, str | None]:
    bank_cheque = _clean_ref(bank.cheque_number)
    if bank_cheque and bank_cheque == _clean_ref(accounting.cheque_number):
        return config.reference_weight, "Cheque number match"

    bank_ref = _clean_ref(bank.reference)
    accounting_ref = _clean_ref(accounting.reference)
    if not bank_ref or not accounting_ref:
        return 0.0, None
    if bank_ref == accounting_ref:
        return config.reference_weight, "Exact reference match"
    if bank_ref in accounting_ref or accounting_ref in bank_ref:
        return config.reference_weight * 0.8, "Partial reference match"
    return 0.0, None


_DESCRIPTION_TIERS: tuple[tuple[float, float, str], ...] = (
    (0.9, 1.0, "Very high description similarity"),
    (0.7, 0.8, "High description similarity"),
    (0.5, 0.5, "Moderate description similarity"),
    (0.3, 0.3, "Low description similarity"),
)


def score_description(
    bank_description: str | None, accounting_description: str | None, config: MatchingConfig
) -> tuple[float, float, str | None]:
    if not config.enable_description_matching:
        return 0.0, 0.0, None
    similarity = description_similarity(bank_description, accounting_description)
    for floor, fraction, reason in _DESCRIPTION_TIERS:
        if similarity > floor:
            return config.description_weight * fraction, similarity, reason
    return 0.0, similarity, None


def confidence_for(score: float, config: MatchingConfig) -> MatchConfidence:
    if score >= config.high_confidence_threshold:
        return MatchConfidence.HIGH
    if score >= config.medium_confidence_threshold:
        return MatchConfidence.MEDIUM
    return MatchConfidence.LOW


# =============================================================================
# Matching
# =============================================================================


def score_match(
    bank: MatchCandidate,
    accounting: MatchCandidate,
    config: MatchingConfig | None = None,
) -> MatchSuggestion:
    """Score one bank/accounting pair."""
    config = config or load_matching_config()
    reasons: list[str] = []

    amount_score, amount_reason = score_amount(bank.amount, accounting.amount, config)
    date_score, date_variance, date_reason = score_date(bank.date, accounting.date, config)
    reference_score, reference_reason = score_reference(bank, accounting, config)
    description_score, similarity, description_reason = score_description(
        bank.description, accounting.description, config
    )
    for reason in (amount_reason, date_reason, reference_reason, description_reason):
        if reason:
            reasons.append(reason)

    total = min(
        round(amount_score + date_score + reference_score + description_score, 2),
        config.max_score,
    )
    return MatchSuggestion(
        bank_transaction_id=bank.id,
        transaction_ids=[accounting.id],
        score=total,
        confidence=confidence_for(total, config),
        reasons=reasons,
        details=MatchDetails(
            amount_score=round(amount_score, 2),
            date_score=round(date_score, 2),
            reference_score=round(reference_score, 2),
            description_score=round(description_score, 2),
            date_variance_days=date_variance,
            description_similarity=round(similarity, 4),
            amount_difference=abs(abs(bank.amount) - abs(accounting.amount)),
        ),
    )


def find_best_matches(
    bank: MatchCandidate,
    candidates: Iterable[MatchCandidate],
    config: MatchingConfig | None = None,
    limit: int = 5,
) -> list[MatchSuggestion]:
    """Suggestions at or above the minimum score, best first."""
    config = config or load_matching_config()
    suggestions = [score_match(bank, candidate, config) for candidate in candidates]
    ranked = sorted(
        (s for s in suggestions if s.score >= config.minimum_match_score),
        key=lambda s: s.score,
        reverse=True,
    )
    return ranked[:limit]


def _best_reference(
    bank: MatchCandidate, group: Sequence[MatchCandidate], config: MatchingConfig
) -> MatchCandidate:
    return max(group, key=lambda candidate: score_reference(bank, candidate, config)[0])


def _combined_candidate(
    bank: MatchCandidate, group: Sequence[MatchCandidate], config: MatchingConfig
) -> AccountingCandidate:
    """Stand-in candidate for a group: summed amount, farthest date, best reference."""
    farthest = max(group, key=lambda candidate: abs((bank.date - candidate.date).days))
    best_ref = _best_reference(bank, group, config)
    return AccountingCandidate(
        id="+".join(candidate.id for candidate in group),
        amount=sum((candidate.amount for candidate in group), Decimal("0")),
        date=farthest.date,
        description=" / ".join(c.description for c in group if c.description),
        reference=best_ref.reference,
        cheque_number=best_ref.cheque_number,
    )


def find_multi_transaction_matches(
    bank: MatchCandidate,
    candidates: Iterable[MatchCandidate],
    config: MatchingConfig | None = None,
    limit: int = 5,
) -> list[MultiTransactionMatch]:
    """Groups of 2..max_combination_size candidates whose amounts sum to the bank amount.

    Only candidates within date_tolerance_days are considered, nearest first,
    capped at max_combination_candidates to bound the number of combinations.
    """
    config = config or load_matching_config()
    if not config.enable_multi_transaction_matching:
        return []

    pool = sorted(
        (
            c
            for c in candidates
            if abs((bank.date - c.date).days) <= config.date_tolerance_days
        ),
        key=lambda c: (abs((bank.date - c.date).days), c.id),
    )[: config.max_combination_candidates]

    matches: list[MultiTransactionMatch] = []
    max_size = min(config.max_combination_size, len(pool))
    for size in range(2, max_size + 1):
        for group in combinations(pool, size):
            total = sum((c.amount for c in group), Decimal("0"))
            if not amount_within_tolerance(bank.amount, total, config):
                continue

            suggestion = score_match(bank, _combined_candidate(bank, group, config), config)
            if suggestion.score < config.minimum_match_score:
                continue
            matches.append(
                MultiTransactionMatch(
                    bank_transaction_id=bank.id,
                    transaction_ids=[c.id for c in group],
                    score=suggestion.score,
                    confidence=suggestion.confidence,
                    reasons=[f"{size} transactions totaling {total:.2f}", *suggestion.reasons],
                    details=suggestion.details,
                    total_amount=total,
                )
            )

    matches.sort(key=lambda m: m.score, reverse=True)
    return matches[:limit]


def batch_auto_match(
    bank_transactions: Sequence[MatchCandidate],
    candidates: Sequence[MatchCandidate],
    config: MatchingConfig | None = None,
) -> BatchMatchResult:
    """Best match per bank transaction, sorted into auto-matched / review / unmatched.

    Falls back to multi-transaction matching when no single candidate scores
    above the minimum. Candidates of an auto-matched suggestion are consumed
    and never offered to a later bank transaction.
    """
    config = config or load_matching_config()
    used: set[str] = set()
    items: list[BatchMatchItem] = []

    with log_timing(
        "batch_auto_match",
        logger=logger,
        bank_count=len(bank_transactions),
        candidate_count=len(candidates),
    ) as timing:
        for bank in bank_transactions:
            available = [c for c in candidates if c.id not in used]
            best: MatchSuggestion | None = next(
                iter(find_best_matches(bank, available, config, limit=1)), None
            )
            if best is None:
                best = next(
                    iter(find_multi_transaction_matches(bank, available, config, limit=1)), None
                )

            if best is not None and best.score >= config.high_confidence_threshold:
                outcome = BatchOutcome.AUTO_MATCHED
                used.update(best.transaction_ids)
            elif best is not None and best.score >= config.medium_confidence_threshold:
                outcome = BatchOutcome.REVIEW
            else:
                outcome = BatchOutcome.UNMATCHED
            items.append(
                BatchMatchItem(bank_transaction_id=bank.id, outcome=outcome, suggestion=best)
            )

        statistics = _batch_statistics(items)
        timing.update(
            auto_matched=statistics.auto_matched,
            review_queued=statistics.review_queued,
            unmatched=statistics.unmatched,
        )

    return BatchMatchResult(items=items, statistics=statistics)


def _batch_statistics(items: Sequence[BatchMatchItem]) -> MatchStatistics:
    # Average over the suggestions that were found, whatever their outcome
    scores = [item.suggestion.score for item in items if item.suggestion is not None]
    return MatchStatistics(
        total=len(items),
        auto_matched=sum(1 for item in items if item.outcome is BatchOutcome.AUTO_MATCHED),
        review_queued=sum(1 for item in items if item.outcome is BatchOutcome.REVIEW),
        unmatched=sum(1 for item in items if item.outcome is BatchOutcome.UNMATCHED),
        average_score=round(sum(scores) / len(scores), 2) if scores else 0.0,
    )


def get_match_statistics(suggestions: Sequence[MatchSuggestion]) -> ConfidenceBreakdown:
    """Counts by confidence tier and the average score."""
    if not suggestions:
        return ConfidenceBreakdown()
    return ConfidenceBreakdown(
        total=len(suggestions),
        high_confidence=sum(1 for s in suggestions if s.confidence is MatchConfidence.HIGH),
        medium_confidence=sum(1 for s in suggestions if s.confidence is MatchConfidence.MEDIUM),
        low_confidence=sum(1 for s in suggestions if s.confidence is MatchConfidence.LOW),
        average_score=round(sum(s.score for s in suggestions) / len(suggestions), 2),
    )
