"""Pydantic schemas package."""

from ledger_integrity.schemas.approval import (
    ApprovalAction,
    ApprovalHistory,
    ApprovalRecord,
    AvailableActions,
)
from ledger_integrity.schemas.audit import AuditLogResponse
from ledger_integrity.schemas.base import BaseResponse, ListResponse
from ledger_integrity.schemas.fiscal import (
    AccountingPeriodResponse,
    FiscalYearCreate,
    FiscalYearResponse,
    PeriodCloseRequest,
    PeriodLockAuditResponse,
    PeriodReopenRequest,
)
from ledger_integrity.schemas.ledger import (
    BalanceSummary,
    DisplayRow,
    LedgerEntry,
    LedgerValidationResult,
)
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
from ledger_integrity.schemas.notification import TaskNotificationCreate
from ledger_integrity.schemas.reconciliation import (
    ReconciliationMatchResponse,
    ReconciliationRunRequest,
)
from ledger_integrity.schemas.transaction import (
    ApprovalDecisionRequest,
    SubmitForApprovalRequest,
    TransactionCreate,
    TransactionResponse,
    ValidateEntriesRequest,
    ValidateEntriesResponse,
    VoidTransactionRequest,
)
from ledger_integrity.schemas.year_end import (
    ClosedAccountBalance,
    ClosingPreview,
    ClosingReadiness,
    ClosingResult,
    ExecuteClosingRequest,
    RetainedEarningsAccount,
    ReverseClosingRequest,
    ReversalResult,
    YearEndBalances,
    YearEndClosingEntryResponse,
)

__all__ = [
    "AccountingPeriodResponse",
    "ApprovalAction",
    "ApprovalDecisionRequest",
    "ApprovalHistory",
    "ApprovalRecord",
    "AuditLogResponse",
    "AvailableActions",
    "BalanceSummary",
    "BaseResponse",
    "BatchMatchItem",
    "BatchMatchResult",
    "BatchOutcome",
    "ClosedAccountBalance",
    "ClosingPreview",
    "ClosingReadiness",
    "ClosingResult",
    "ConfidenceBreakdown",
    "DisplayRow",
    "ExecuteClosingRequest",
    "FiscalYearCreate",
    "FiscalYearResponse",
    "LedgerEntry",
    "LedgerValidationResult",
    "ListResponse",
    "MatchConfidence",
    "MatchDetails",
    "MatchStatistics",
    "MatchSuggestion",
    "MultiTransactionMatch",
    "PeriodCloseRequest",
    "PeriodLockAuditResponse",
    "PeriodReopenRequest",
    "ReconciliationMatchResponse",
    "ReconciliationRunRequest",
    "RetainedEarningsAccount",
    "ReversalResult",
    "ReverseClosingRequest",
    "SubmitForApprovalRequest",
    "TaskNotificationCreate",
    "TransactionCreate",
    "TransactionResponse",
    "ValidateEntriesRequest",
    "ValidateEntriesResponse",
    "VoidTransactionRequest",
    "YearEndBalances",
    "YearEndClosingEntryResponse",
]
