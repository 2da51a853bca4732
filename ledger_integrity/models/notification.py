"""Task notification model."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_integrity.database import Base
from ledger_integrity.models.base import TimestampMixin, UUIDMixin, enum_type


class NotificationType(str, enum.Enum):
    ACTIONABLE = "actionable"
    INFORMATIONAL = "informational"


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class NotificationStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class TaskNotification(Base, UUIDMixin, TimestampMixin):
    """A task or FYI delivered to a single user."""

    __tablename__ = "task_notifications"

    type: Mapped[NotificationType] = mapped_column(
        enum_type(NotificationType, "notification_type_enum"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    assigned_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    link_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    priority: Mapped[NotificationPriority] = mapped_column(
        enum_type(NotificationPriority, "notification_priority_enum"),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )
    status: Mapped[NotificationStatus] = mapped_column(
        enum_type(NotificationStatus, "notification_status_enum"),
        nullable=False,
        default=NotificationStatus.PENDING,
        index=True,
    )
    auto_completable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
