"""Double-entry ledger validation.

Every place that checks whether debits equal credits goes through
calculate_balance so that rounding and tolerance are applied the same way.
"""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ledger_integrity.schemas.ledger import (
    BalanceSummary,
    DisplayRow,
    LedgerEntry,
    LedgerValidationResult,
)

BALANCE_TOLERANCE = Decimal("0.01")
LARGE_ENTRY_COUNT = 20

_CENT = Decimal("0.01")

EntryInput = LedgerEntry | Mapping[str, Any]


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def coerce_entries(entries: Iterable[EntryInput] | None) -> list[LedgerEntry]:
    """Normalize mappings into LedgerEntry instances."""
    return [
        entry if isinstance(entry, LedgerEntry) else LedgerEntry.model_validate(entry)
        for entry in entries or ()
    ]


def _entry_errors(entry: LedgerEntry) -> list[str]:
    errors: list[str] = []
    if not entry.reference:
        errors.append("Account is required")

    if entry.debit < 0 or entry.credit < 0:
        errors.append("Amounts cannot be negative")
    elif entry.debit == 0 and entry.credit == 0:
        errors.append("Either debit or credit amount must be greater than zero")
    elif entry.debit > 0 and entry.credit > 0:
        errors.append("Cannot have both debit and credit amounts")
    return errors


def calculate_balance(entries: Iterable[EntryInput] | None) -> BalanceSummary:
    """Sum debits and credits, rounded to cents, and test balance within tolerance."""
    normalized = coerce_entries(entries)
    total_debits = round_money(sum((e.debit for e in normalized), Decimal("0")))
    total_credits = round_money(sum((e.credit for e in normalized), Decimal("0")))
    difference = round_money(total_debits - total_credits)
    return BalanceSummary(
        total_debits=total_debits,
        total_credits=total_credits,
        difference=difference,
        is_balanced=abs(difference) <= BALANCE_TOLERANCE,
    )


def validate_ledger_entries(entries: Sequence[EntryInput] | None) -> LedgerValidationResult:
    """Validate a full set of entries against double-entry rules.

    All problems are collected; validation never stops at the first error.
    """
    normalized = coerce_entries(entries)
    if not normalized:
        return LedgerValidationResult(
            is_valid=False, errors=["At least one ledger entry is required"]
        )

    errors: list[str] = []
    warnings: list[str] = []

    if len(normalized) < 2:
        errors.append("At least two ledger entries are required for double-entry bookkeeping")

    for position, entry in enumerate(normalized, start=1):
        errors.extend(f"Entry {position}: {message}" for message in _entry_errors(entry))

    balance = calculate_balance(normalized)
    if not balance.is_balanced:
        errors.append(
            f"Total debits ({balance.total_debits:.2f}) must equal total credits "
            f"({balance.total_credits:.2f}). Difference: {abs(balance.difference):.2f}"
        )

    if len(normalized) > LARGE_ENTRY_COUNT:
        warnings.append(
            "Large number of entries. Consider splitting into multiple journal entries."
        )

    references = Counter(entry.reference for entry in normalized if entry.reference)
    if any(count > 1 for count in references.values()):
        warnings.append("Multiple entries for the same account detected. This may be intentional.")

    return LedgerValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_single_entry(entry: EntryInput) -> LedgerValidationResult:
    """Per-entry rules only, for inline validation while an entry is being edited."""
    (normalized,) = coerce_entries([entry])
    errors = _entry_errors(normalized)
    return LedgerValidationResult(is_valid=not errors, errors=errors)


def _account_label(entry: LedgerEntry) -> str:
    return (
        entry.account_name
        or entry.account_code
        or entry.account_id
        or entry.entity_id
        or "Unknown"
    )


def _format_amount(value: Decimal) -> str:
    return f"{round_money(value):.2f}" if value else "-"


def ledger_display_rows(entries: Iterable[EntryInput]) -> list[DisplayRow]:
    """Rows for a ledger entry table, closed by a Total row."""
    normalized = coerce_entries(entries)
    rows = [
        DisplayRow(
            account=_account_label(entry),
            debit=_format_amount(entry.debit),
            credit=_format_amount(entry.credit),
            description=entry.description or "",
        )
        for entry in normalized
    ]
    balance = calculate_balance(normalized)
    rows.append(
        DisplayRow(
            account="Total",
            debit=f"{balance.total_debits:.2f}",
            credit=f"{balance.total_credits:.2f}",
        )
    )
    return rows


def format_ledger_entries_for_display(entries: Iterable[EntryInput]) -> str:
    """Plain-text table of entries, used for logs and confirmation dialogs."""
    rows = ledger_display_rows(entries)
    width = max(len("Account"), *(len(row.account) for row in rows))
    lines = [f"{'Account'.ljust(width)}  {'Debit':>14}  {'Credit':>14}"]
    lines.append("-" * len(lines[0]))
    for row in rows[:-1]:
        lines.append(f"{row.account.ljust(width)}  {row.debit:>14}  {row.credit:>14}")
    lines.append("-" * len(lines[0]))
    total = rows[-1]
    lines.append(f"{total.account.ljust(width)}  {total.debit:>14}  {total.credit:>14}")
    return "\n".join(lines)
