"""Task notifications.

Callers treat these as best-effort (see side_effects.run_best_effort); each
function commits its own unit of work.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.database import atomic
from ledger_integrity.logger import get_logger
from ledger_integrity.models import NotificationStatus, TaskNotification
from ledger_integrity.schemas.notification import TaskNotificationCreate

logger = get_logger(__name__)


async def create_task_notification(db: AsyncSession, payload: TaskNotificationCreate) -> UUID:
    """Persist a notification and return its id."""
    notification = TaskNotification(**payload.model_dump())
    async with atomic(db):
        db.add(notification)

    logger.info(
        "Task notification created",
        notification_id=str(notification.id),
        user_id=payload.user_id,
        category=payload.category,
        entity_id=payload.entity_id,
    )
    return notification.id


async def complete_task_notifications_by_entity(
    db: AsyncSession, entity_type: str, entity_id: str
) -> int:
    """Mark every pending notification for an entity as completed."""
    result = await db.execute(
        select(TaskNotification).where(
            TaskNotification.entity_type == entity_type,
            TaskNotification.entity_id == entity_id,
            TaskNotification.status == NotificationStatus.PENDING,
        )
    )
    pending = result.scalars().all()
    if not pending:
        return 0

    now = datetime.now(UTC)
    async with atomic(db):
        for notification in pending:
            notification.status = NotificationStatus.COMPLETED
            notification.completed_at = now

    logger.info(
        "Task notifications completed",
        entity_type=entity_type,
        entity_id=entity_id,
        count=len(pending),
    )
    return len(pending)


async def get_user_notifications(
    db: AsyncSession, user_id: str, *, pending_only: bool = True
) -> list[TaskNotification]:
    query = select(TaskNotification).where(TaskNotification.user_id == user_id)
    if pending_only:
        query = query.where(TaskNotification.status == NotificationStatus.PENDING)
    result = await db.execute(query.order_by(TaskNotification.created_at.desc()))
    return list(result.scalars().all())
