"""Double-entry validation rules and balance arithmetic."""

from decimal import Decimal

import pytest

from ledger_integrity.schemas.ledger import LedgerEntry
from ledger_integrity.services.ledger_validator import (
    calculate_balance,
    format_ledger_entries_for_display,
    ledger_display_rows,
    round_money,
    validate_ledger_entries,
    validate_single_entry,
)


def _entry(account: str, debit: str = "0", credit: str = "0", **kwargs) -> LedgerEntry:
    return LedgerEntry(account_id=account, debit=Decimal(debit), credit=Decimal(credit), **kwargs)


def test_balanced_pair_is_valid():
    result = validate_ledger_entries([_entry("cash", debit="100.00"), _entry("sales", credit="100.00")])
    assert result.is_valid is True
    assert result.errors == []
    assert result.warnings == []


def test_empty_entries_rejected():
    result = validate_ledger_entries([])
    assert result.is_valid is False
    assert result.errors == ["At least one ledger entry is required"]


def test_none_entries_rejected():
    assert validate_ledger_entries(None).errors == ["At least one ledger entry is required"]


def test_single_entry_needs_a_counterpart():
    result = validate_ledger_entries([_entry("cash", debit="50.00")])
    assert result.is_valid is False
    assert "At least two ledger entries are required for double-entry bookkeeping" in result.errors


def test_all_errors_are_collected():
    """Structural and balance problems are reported together."""
    entries = [
        LedgerEntry(debit=Decimal("10.00")),
        _entry("sales", debit="5.00", credit="5.00"),
        _entry("rent", debit="-1.00"),
        _entry("misc"),
    ]
    result = validate_ledger_entries(entries)
    assert result.is_valid is False
    assert "Entry 1: Account is required" in result.errors
    assert "Entry 2: Cannot have both debit and credit amounts" in result.errors
    assert "Entry 3: Amounts cannot be negative" in result.errors
    assert "Entry 4: Either debit or credit amount must be greater than zero" in result.errors
    assert any(e.startswith("Total debits (") for e in result.errors)


def test_unbalanced_message_reports_totals_and_difference():
    result = validate_ledger_entries([_entry("cash", debit="100.00"), _entry("sales", credit="90.00")])
    assert result.errors == [
        "Total debits (100.00) must equal total credits (90.00). Difference: 10.00"
    ]


def test_difference_within_one_cent_is_balanced():
    entries = [_entry("cash", debit="100.00"), _entry("sales", credit="99.99")]
    assert validate_ledger_entries(entries).is_valid is True
    assert calculate_balance(entries).is_balanced is True


def test_difference_above_one_cent_is_unbalanced():
    entries = [_entry("cash", debit="100.00"), _entry("sales", credit="99.98")]
    assert validate_ledger_entries(entries).is_valid is False


def test_entity_id_counts_as_account_reference():
    entries = [
        LedgerEntry(entity_id="customer-7", debit=Decimal("20.00")),
        _entry("sales", credit="20.00"),
    ]
    assert validate_ledger_entries(entries).is_valid is True


def test_blank_account_id_is_treated_as_missing():
    entries = [LedgerEntry(account_id="   ", debit=Decimal("5")), _entry("sales", credit="5")]
    result = validate_ledger_entries(entries)
    assert "Entry 1: Account is required" in result.errors


def test_warnings_do_not_invalidate():
    entries = [_entry("cash", debit="1.00") for _ in range(21)]
    entries.append(_entry("sales", credit="21.00"))
    result = validate_ledger_entries(entries)
    assert result.is_valid is True
    assert "Large number of entries. Consider splitting into multiple journal entries." in result.warnings
    assert (
        "Multiple entries for the same account detected. This may be intentional."
        in result.warnings
    )


def test_accepts_plain_mappings():
    result = validate_ledger_entries(
        [
            {"account_id": "cash", "debit": "12.50", "credit": None},
            {"account_id": "sales", "credit": "12.50"},
        ]
    )
    assert result.is_valid is True


def test_calculate_balance_rounds_to_cents():
    balance = calculate_balance(
        [_entry("a", debit="10.005"), _entry("b", debit="0.004"), _entry("c", credit="10.01")]
    )
    assert balance.total_debits == Decimal("10.01")
    assert balance.total_credits == Decimal("10.01")
    assert balance.difference == Decimal("0.00")
    assert balance.is_balanced is True


def test_calculate_balance_of_nothing():
    balance = calculate_balance([])
    assert balance.total_debits == Decimal("0.00")
    assert balance.is_balanced is True


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1.005", "1.01"), ("1.004", "1.00"), ("-2.675", "-2.68"), ("3", "3.00")],
)
def test_round_money_half_up(value, expected):
    assert round_money(Decimal(value)) == Decimal(expected)


def test_validate_single_entry():
    assert validate_single_entry(_entry("cash", debit="1.00")).is_valid is True
    result = validate_single_entry({"debit": "0", "credit": "0"})
    assert result.errors == [
        "Account is required",
        "Either debit or credit amount must be greater than zero",
    ]


def test_display_rows_end_with_total():
    rows = ledger_display_rows(
        [
            _entry("cash", debit="100", account_name="Cash at bank"),
            _entry("sales", credit="100", account_code="4000", description="March sales"),
        ]
    )
    assert [row.account for row in rows] == ["Cash at bank", "4000", "Total"]
    assert rows[0].debit == "100.00"
    assert rows[0].credit == "-"
    assert rows[1].description == "March sales"
    assert (rows[2].debit, rows[2].credit) == ("100.00", "100.00")


def test_format_for_display_is_a_text_table():
    text = format_ledger_entries_for_display(
        [_entry("cash", debit="100", account_name="Cash"), _entry("sales", credit="100", account_name="Sales")]
    )
    lines = text.splitlines()
    assert lines[0].startswith("Account")
    assert "Debit" in lines[0] and "Credit" in lines[0]
    assert lines[-1].startswith("Total")
    assert lines[-1].rstrip().endswith("100.00")


def test_reversal_swaps_sides_and_prefixes_description():
    original = _entry("cash", debit="40.00", description="Rent")
    reversed_entry = original.as_reversal()
    assert reversed_entry.debit == Decimal("0")
    assert reversed_entry.credit == Decimal("40.00")
    assert reversed_entry.description == "[REVERSAL] Rent"
    assert original.debit == Decimal("40.00")
