"""Approval workflow value types."""

import enum
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class ApprovalAction(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ApprovalRecord(BaseModel):
    """One immutable entry in a transaction's approval trail."""

    model_config = ConfigDict(frozen=True)

    action: ApprovalAction
    user_id: str
    user_name: str
    timestamp: datetime
    comment: str | None = None


class ApprovalHistory(BaseModel):
    """Ordered, append-only approval log.

    append() returns a new history; existing instances are never modified.
    """

    model_config = ConfigDict(frozen=True)

    records: tuple[ApprovalRecord, ...] = ()

    @classmethod
    def from_json(cls, raw: Iterable[dict[str, Any]] | None) -> "ApprovalHistory":
        return cls(records=tuple(ApprovalRecord.model_validate(item) for item in raw or ()))

    def append(self, record: ApprovalRecord) -> "ApprovalHistory":
        return ApprovalHistory(records=(*self.records, record))

    def to_json(self) -> list[dict[str, Any]]:
        return [record.model_dump(mode="json") for record in self.records]

    @property
    def latest(self) -> ApprovalRecord | None:
        return self.records[-1] if self.records else None

    def __len__(self) -> int:
        return len(self.records)


class AvailableActions(BaseModel):
    can_edit: bool = False
    can_delete: bool = False
    can_submit: bool = False
    can_approve: bool = False
    can_reject: bool = False
    can_record_payment: bool = False
