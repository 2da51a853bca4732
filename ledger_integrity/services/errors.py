"""Domain exceptions raised by the ledger services.

All are raised synchronously and never retried; routers translate them into
HTTP responses.
"""

from datetime import date
from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """Base class for ledger domain errors."""


class UnbalancedEntriesError(LedgerError):
    """Ledger entries failed double-entry validation."""

    def __init__(self, total_debits: Decimal, total_credits: Decimal, errors: list[str]):
        self.total_debits = total_debits
        self.total_credits = total_credits
        self.errors = list(errors)
        super().__init__(
            "Transaction entries failed double-entry validation: " + "; ".join(self.errors)
        )


class ClosedPeriodError(LedgerError):
    """Transaction date falls in a CLOSED or LOCKED fiscal year or period."""

    def __init__(self, transaction_date: date, period_name: str, status: str):
        self.transaction_date = transaction_date
        self.period_name = period_name
        self.status = status
        super().__init__(
            f"Cannot post transaction: the accounting period for {transaction_date.isoformat()} "
            f"({period_name}) is {status.lower()}. Please contact your accountant to reopen the period."
        )


class PeriodResolutionError(LedgerError):
    """The fiscal period lookup itself failed."""


class FiscalYearError(LedgerError):
    """Invalid fiscal year definition."""


class PeriodNotFoundError(LedgerError):
    """Accounting period or fiscal year does not exist."""


class PeriodTransitionError(LedgerError):
    """Requested period status change is not allowed from the current status."""


class TransactionNotFoundError(LedgerError):
    """Transaction does not exist."""


class InvalidTransitionError(LedgerError):
    """Transaction is not in a status that permits the requested action."""


class ValidationError(LedgerError):
    """Caller input failed validation."""


class ApprovalValidationError(ValidationError):
    """Approval workflow input failed validation."""


class AccountNotFoundError(LedgerError):
    """Ledger entry references an account that does not exist."""


class ReconciliationError(LedgerError):
    """Reconciliation match cannot be reviewed."""


class MatchNotFoundError(ReconciliationError):
    """Reconciliation match does not exist."""


class YearEndClosingError(LedgerError):
    """Year-end closing readiness or balance failure."""

    def __init__(self, message: str, error_code: str, details: dict[str, Any] | None = None):
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class AuthorizationError(LedgerError):
    """Actor lacks the permission required for an operation."""

    def __init__(
        self,
        message: str,
        *,
        required_permission: str | None = None,
        user_id: str | None = None,
        operation: str | None = None,
    ):
        self.required_permission = required_permission
        self.user_id = user_id
        self.operation = operation
        super().__init__(message)
