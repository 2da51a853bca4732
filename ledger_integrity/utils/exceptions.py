"""Translate ledger domain errors into HTTP responses."""

from typing import NoReturn

from fastapi import HTTPException, status

from ledger_integrity.services.errors import (
    AuthorizationError,
    ClosedPeriodError,
    InvalidTransitionError,
    LedgerError,
    MatchNotFoundError,
    PeriodNotFoundError,
    PeriodResolutionError,
    PeriodTransitionError,
    TransactionNotFoundError,
    UnbalancedEntriesError,
    YearEndClosingError,
)


def raise_not_found(resource_name: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{resource_name} not found",
    ) from cause


def raise_bad_request(detail: str | dict, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    ) from cause


def raise_forbidden(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=detail,
    ) from cause


def raise_conflict(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    ) from cause


def raise_service_unavailable(detail: str, *, cause: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
    ) from cause


_NOT_FOUND_CODES = frozenset(
    {"FISCAL_YEAR_NOT_FOUND", "CLOSING_ENTRY_NOT_FOUND", "JOURNAL_NOT_FOUND"}
)


def raise_for_ledger_error(exc: LedgerError) -> NoReturn:
    """Map a domain error raised by a service onto an HTTP status."""
    if isinstance(exc, AuthorizationError):
        raise_forbidden(str(exc), cause=exc)
    if isinstance(exc, (TransactionNotFoundError, PeriodNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, UnbalancedEntriesError):
        raise_bad_request(
            {
                "message": str(exc),
                "errors": exc.errors,
                "total_debits": str(exc.total_debits),
                "total_credits": str(exc.total_credits),
            },
            cause=exc,
        )
    if isinstance(exc, (ClosedPeriodError, InvalidTransitionError, PeriodTransitionError)):
        raise_conflict(str(exc), cause=exc)
    if isinstance(exc, MatchNotFoundError):
        raise_not_found("Match", cause=exc)
    if isinstance(exc, YearEndClosingError):
        detail = {"message": str(exc), "error_code": exc.error_code, "details": exc.details}
        if exc.error_code in _NOT_FOUND_CODES:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail) from exc
        raise_bad_request(detail, cause=exc)
    if isinstance(exc, PeriodResolutionError):
        raise_service_unavailable(str(exc), cause=exc)
    raise_bad_request(str(exc), cause=exc)
