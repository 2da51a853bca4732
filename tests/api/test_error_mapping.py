"""Domain errors to HTTP responses."""

from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from ledger_integrity.services.errors import (
    AuthorizationError,
    ClosedPeriodError,
    MatchNotFoundError,
    PeriodResolutionError,
    ReconciliationError,
    TransactionNotFoundError,
    UnbalancedEntriesError,
    YearEndClosingError,
)
from ledger_integrity.utils.exceptions import raise_for_ledger_error


@pytest.mark.parametrize(
    ("error", "status_code", "detail"),
    [
        (AuthorizationError("No access"), 403, "No access"),
        (TransactionNotFoundError("Transaction not found"), 404, "Transaction not found"),
        (MatchNotFoundError("Match not found"), 404, "Match not found"),
        (ReconciliationError("Match not found"), 400, "Match not found"),
        (
            ReconciliationError("Bank transaction is already reconciled"),
            400,
            "Bank transaction is already reconciled",
        ),
        (PeriodResolutionError("lookup failed"), 503, "lookup failed"),
    ],
)
def test_status_follows_error_type(error, status_code, detail):
    with pytest.raises(HTTPException) as exc_info:
        raise_for_ledger_error(error)

    assert exc_info.value.status_code == status_code
    assert exc_info.value.detail == detail
    assert exc_info.value.__cause__ is error


def test_closed_period_is_a_conflict():
    error = ClosedPeriodError(date(2024, 3, 15), "Mar 2024", "locked")

    with pytest.raises(HTTPException) as exc_info:
        raise_for_ledger_error(error)

    assert exc_info.value.status_code == 409


def test_unbalanced_entries_carry_totals():
    error = UnbalancedEntriesError(Decimal("100.00"), Decimal("90.00"), ["Debits do not match"])

    with pytest.raises(HTTPException) as exc_info:
        raise_for_ledger_error(error)

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["total_debits"] == "100.00"
    assert exc_info.value.detail["errors"] == ["Debits do not match"]


@pytest.mark.parametrize(("code", "status_code"), [("FISCAL_YEAR_NOT_FOUND", 404), ("NOT_READY", 400)])
def test_year_end_errors_keep_their_code(code, status_code):
    with pytest.raises(HTTPException) as exc_info:
        raise_for_ledger_error(YearEndClosingError("nope", code))

    assert exc_info.value.status_code == status_code
    assert exc_info.value.detail["error_code"] == code
