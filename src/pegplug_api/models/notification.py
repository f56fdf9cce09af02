from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, func

from pegplug_api.db.base import Base, generate_id


class NotificationStatusEnum(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class NotificationCategoryEnum(str, Enum):
    GEOFENCE_ENTRY = "geofence_entry"
    EXPIRY_REMINDER = "expiry_reminder"
    SPIN_WIN = "spin_win"
    DAILY_SPINS = "daily_spins"


class Notification(Base):
    """Outbound notification request; `scheduled_at` is null for immediate sends."""

    __tablename__ = "notifications"

    id = Column(String(64), primary_key=True, default=generate_id)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    category = Column(String(32), nullable=False)
    status = Column(
        String(16),
        nullable=False,
        default=NotificationStatusEnum.PENDING.value,
        server_default=NotificationStatusEnum.PENDING.value,
    )
    identifier = Column(String(128), nullable=True)
    title = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
