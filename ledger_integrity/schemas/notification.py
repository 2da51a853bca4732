"""Task notification payloads."""

from pydantic import BaseModel, Field

from ledger_integrity.models.notification import NotificationPriority, NotificationType


class TaskNotificationCreate(BaseModel):
    type: NotificationType
    category: str = Field(min_length=1, max_length=100)
    user_id: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=300)
    message: str
    entity_type: str
    entity_id: str
    link_url: str | None = None
    priority: NotificationPriority = NotificationPriority.MEDIUM
    assigned_by: str | None = None
    assigned_by_name: str | None = None
    auto_completable: bool = False
