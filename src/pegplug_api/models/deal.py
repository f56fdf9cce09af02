"""Deals offered by merchants at one or more of their locations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text, func

from pegplug_api.core.clock import ensure_aware
from pegplug_api.db.base import Base, generate_id


class Deal(Base):
    __tablename__ = "deals"

    id = Column(String(64), primary_key=True, default=generate_id)
    merchant_id = Column(String(64), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False, default="", server_default="")
    description = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    location_ids = Column(JSON, nullable=False, default=list)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, nullable=False, default=False, server_default="false", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def is_active_at(self, now: datetime) -> bool:
        """Active flag set and `now` inside the optional [start, end] window."""

        if not self.active:
            return False
        moment = ensure_aware(now)
        if self.start_date is not None and moment < ensure_aware(self.start_date):
            return False
        if self.end_date is not None and moment > ensure_aware(self.end_date):
            return False
        return True

    def covers_location(self, location_id: str) -> bool:
        return location_id in (self.location_ids or [])
