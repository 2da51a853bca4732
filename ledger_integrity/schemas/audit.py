"""Audit trail response schema."""

from datetime import datetime
from typing import Any
from uuid import UUID

from ledger_integrity.models import AuditSeverity
from ledger_integrity.schemas.base import BaseResponse


class AuditLogResponse(BaseResponse):
    id: UUID
    actor_id: str
    actor_name: str | None = None
    action: str
    entity_type: str
    entity_id: str
    entity_name: str | None = None
    description: str
    severity: AuditSeverity
    details: dict[str, Any] | None = None
    created_at: datetime
