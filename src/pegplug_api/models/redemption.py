"""Redemption records ("Plugs") and their lifecycle states."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, String, text

from pegplug_api.core.clock import ensure_aware
from pegplug_api.db.base import Base, generate_id


class RedemptionStatusEnum(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class RedemptionExpiryReasonEnum(str, Enum):
    ELAPSED = "elapsed"
    CANCELLED = "cancelled"


class Redemption(Base):
    """A deal won or staged for a user, redeemable until `validity_period`."""

    __tablename__ = "redemptions"
    __table_args__ = (
        Index(
            "uq_redemptions_user_deal_pending",
            "user_id",
            "deal_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index(
            "uq_redemptions_user_deal_completed",
            "user_id",
            "deal_id",
            unique=True,
            sqlite_where=text("status = 'completed'"),
            postgresql_where=text("status = 'completed'"),
        ),
        Index("ix_redemptions_user_timestamp", "user_id", "timestamp"),
    )

    id = Column(String(64), primary_key=True, default=generate_id)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    merchant_id = Column(String(64), nullable=False)
    location_id = Column(String(64), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    validity_period = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        String(16),
        nullable=False,
        default=RedemptionStatusEnum.PENDING.value,
        server_default=RedemptionStatusEnum.PENDING.value,
    )
    device_id = Column(String(128), nullable=False, default="", server_default="")
    redemption_latitude = Column(Float, nullable=False, default=0.0)
    redemption_longitude = Column(Float, nullable=False, default=0.0)
    notification_sent = Column(Boolean, nullable=False, default=False, server_default="false")
    completed_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)
    expiry_reason = Column(String(16), nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.status == RedemptionStatusEnum.PENDING.value

    def is_valid_at(self, now: datetime) -> bool:
        return self.is_pending and ensure_aware(now) < ensure_aware(self.validity_period)

    def is_lapsed_at(self, now: datetime) -> bool:
        """Pending on paper but past its validity window."""

        return self.is_pending and ensure_aware(now) >= ensure_aware(self.validity_period)

    def remaining_time(self, now: datetime) -> timedelta:
        """May be negative; callers clamp to zero for display."""

        return ensure_aware(self.validity_period) - ensure_aware(now)
