from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String

from pegplug_api.db.base import Base, generate_id


class Spin(Base):
    """Outcome of one slot spin; `redemption_id` is set once a win is claimed."""

    __tablename__ = "spins"
    __table_args__ = (Index("ix_spins_user_created", "user_id", "created_at"),)

    id = Column(String(64), primary_key=True, default=generate_id)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    merchant_id = Column(String(64), nullable=False)
    location_id = Column(String(64), nullable=False)
    won = Column(Boolean, nullable=False, default=False)
    deal_id = Column(String(64), ForeignKey("deals.id", ondelete="SET NULL"), nullable=True)
    redemption_id = Column(String(64), ForeignKey("redemptions.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
