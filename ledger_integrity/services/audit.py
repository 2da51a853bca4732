"""Audit trail for business events.

Writes are best-effort from the caller's point of view; each call commits
its own row.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.database import atomic
from ledger_integrity.logger import get_logger
from ledger_integrity.models import AuditLog, AuditSeverity

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditContext:
    user_id: str
    user_email: str | None = None
    user_name: str | None = None


def create_audit_context(
    user_id: str, user_email: str | None = None, user_name: str | None = None
) -> AuditContext:
    return AuditContext(user_id=user_id, user_email=user_email, user_name=user_name)


async def log_audit_event(
    db: AsyncSession,
    context: AuditContext,
    action: str,
    entity_type: str,
    entity_id: str,
    description: str,
    *,
    entity_name: str | None = None,
    severity: AuditSeverity = AuditSeverity.INFO,
    details: dict[str, Any] | None = None,
) -> UUID:
    """Append an audit row and return its id."""
    entry = AuditLog(
        actor_id=context.user_id,
        actor_name=context.user_name,
        actor_email=context.user_email,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        description=description,
        severity=severity,
        details=details,
    )
    async with atomic(db):
        db.add(entry)

    logger.info(
        "Audit event recorded",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        severity=severity.value,
    )
    return entry.id


async def get_entity_audit_trail(
    db: AsyncSession, entity_type: str | Sequence[str], entity_id: str
) -> list[AuditLog]:
    """Events for one entity, oldest first. Accepts several entity types for the same id."""
    types = [entity_type] if isinstance(entity_type, str) else list(entity_type)
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.entity_type.in_(types), AuditLog.entity_id == entity_id)
        .order_by(AuditLog.created_at)
    )
    return list(result.scalars().all())
