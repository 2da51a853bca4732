"""Services package."""

from ledger_integrity.services.approval import (
    ApprovalOutcome,
    approve_transaction,
    get_available_actions,
    reject_transaction,
    submit_for_approval,
)
from ledger_integrity.services.auto_matching import (
    MatchingConfig,
    batch_auto_match,
    find_best_matches,
    find_multi_transaction_matches,
    get_match_statistics,
    load_matching_config,
    score_match,
)
from ledger_integrity.services.errors import (
    AccountNotFoundError,
    ApprovalValidationError,
    AuthorizationError,
    ClosedPeriodError,
    FiscalYearError,
    InvalidTransitionError,
    LedgerError,
    MatchNotFoundError,
    PeriodNotFoundError,
    PeriodResolutionError,
    PeriodTransitionError,
    ReconciliationError,
    TransactionNotFoundError,
    UnbalancedEntriesError,
    ValidationError,
    YearEndClosingError,
)
from ledger_integrity.services.fiscal_year import (
    calculate_year_end_balances,
    check_transaction_period,
    close_period,
    create_fiscal_year,
    get_current_fiscal_year,
    is_period_open,
    lock_period,
    reopen_period,
)
from ledger_integrity.services.ledger_validator import (
    calculate_balance,
    format_ledger_entries_for_display,
    validate_ledger_entries,
    validate_single_entry,
)
from ledger_integrity.services.reconciliation import (
    accept_match,
    count_pending_matches,
    get_pending_matches,
    reject_match,
    run_auto_matching,
)
from ledger_integrity.services.transactions import (
    can_void_transaction,
    post_transaction,
    save_transaction,
    save_transaction_atomic,
    save_transaction_batch,
    void_transaction,
)
from ledger_integrity.services.year_end_closing import (
    check_year_end_closing_readiness,
    execute_year_end_closing,
    get_year_end_closing_history,
    preview_year_end_closing,
    reverse_year_end_closing,
)

__all__ = [
    "AccountNotFoundError",
    "ApprovalOutcome",
    "ApprovalValidationError",
    "AuthorizationError",
    "ClosedPeriodError",
    "FiscalYearError",
    "InvalidTransitionError",
    "LedgerError",
    "MatchNotFoundError",
    "MatchingConfig",
    "PeriodNotFoundError",
    "PeriodResolutionError",
    "PeriodTransitionError",
    "ReconciliationError",
    "TransactionNotFoundError",
    "UnbalancedEntriesError",
    "ValidationError",
    "YearEndClosingError",
    "accept_match",
    "approve_transaction",
    "batch_auto_match",
    "calculate_balance",
    "calculate_year_end_balances",
    "can_void_transaction",
    "check_transaction_period",
    "check_year_end_closing_readiness",
    "close_period",
    "count_pending_matches",
    "create_fiscal_year",
    "execute_year_end_closing",
    "find_best_matches",
    "find_multi_transaction_matches",
    "format_ledger_entries_for_display",
    "get_available_actions",
    "get_current_fiscal_year",
    "get_match_statistics",
    "get_pending_matches",
    "get_year_end_closing_history",
    "is_period_open",
    "load_matching_config",
    "lock_period",
    "post_transaction",
    "preview_year_end_closing",
    "reject_match",
    "reject_transaction",
    "reopen_period",
    "reverse_year_end_closing",
    "run_auto_matching",
    "save_transaction",
    "save_transaction_atomic",
    "save_transaction_batch",
    "score_match",
    "submit_for_approval",
    "validate_ledger_entries",
    "validate_single_entry",
    "void_transaction",
]
