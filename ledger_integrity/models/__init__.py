"""SQLAlchemy models package."""

from ledger_integrity.models.account import DEBIT_NORMAL_TYPES, Account, AccountType
from ledger_integrity.models.audit import AuditLog, AuditSeverity
from ledger_integrity.models.bank import BankTransaction
from ledger_integrity.models.fiscal import (
    AccountingPeriod,
    FiscalYear,
    PeriodLockAction,
    PeriodLockAudit,
    PeriodStatus,
    PeriodType,
)
from ledger_integrity.models.notification import (
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    TaskNotification,
)
from ledger_integrity.models.reconciliation import (
    MatchType,
    ReconciliationMatch,
    ReconciliationStatus,
)
from ledger_integrity.models.transaction import (
    JournalType,
    PaymentStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_integrity.models.user import User
from ledger_integrity.models.year_end import ClosingStatus, YearEndClosingEntry

__all__ = [
    "DEBIT_NORMAL_TYPES",
    "Account",
    "AccountType",
    "AccountingPeriod",
    "AuditLog",
    "AuditSeverity",
    "BankTransaction",
    "ClosingStatus",
    "FiscalYear",
    "JournalType",
    "MatchType",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationType",
    "PaymentStatus",
    "PeriodLockAction",
    "PeriodLockAudit",
    "PeriodStatus",
    "PeriodType",
    "ReconciliationMatch",
    "ReconciliationStatus",
    "TaskNotification",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "YearEndClosingEntry",
]
