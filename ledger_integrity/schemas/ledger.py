"""Ledger entry value types and validation results."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LedgerEntry(BaseModel):
    """One side of a journal line.

    Construction never rejects business-rule problems (missing account,
    negative or double-sided amounts); those are reported together by the
    ledger validator so a caller can show every problem at once.
    """

    model_config = ConfigDict(extra="ignore")

    account_id: str | None = None
    entity_id: str | None = None
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None
    account_code: str | None = None
    account_name: str | None = None
    cost_centre_id: str | None = None

    @field_validator("debit", "credit", mode="before")
    @classmethod
    def _none_is_zero(cls, value: Any) -> Any:
        return Decimal("0") if value is None else value

    @field_validator("account_id", "entity_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @property
    def reference(self) -> str | None:
        """Account reference, falling back to the entity reference."""
        return self.account_id or self.entity_id

    def as_reversal(self, prefix: str = "[REVERSAL] ") -> "LedgerEntry":
        """Copy with debit and credit swapped."""
        return self.model_copy(
            update={
                "debit": self.credit,
                "credit": self.debit,
                "description": f"{prefix}{self.description or ''}",
            }
        )


class LedgerValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class BalanceSummary(BaseModel):
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool


class DisplayRow(BaseModel):
    """Row of a ledger entry table; amounts are pre-formatted strings."""

    account: str
    debit: str
    credit: str
    description: str = ""
