"""Merchants and their physical locations ("Pegs")."""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from pegplug_api.db.base import Base, generate_id


DEFAULT_GEOFENCE_RADIUS_MILES = 0.5


class Merchant(Base):
    """Merchant onboarded externally; read-only for the reward core."""

    __tablename__ = "merchants"

    id = Column(String(64), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    logo = Column(String, nullable=True)
    merchant_type = Column(String, nullable=True)
    active = Column(Boolean, nullable=False, default=False, server_default="false")
    geofence_radius = Column(
        Float,
        nullable=False,
        default=DEFAULT_GEOFENCE_RADIUS_MILES,
        server_default=str(DEFAULT_GEOFENCE_RADIUS_MILES),
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    locations = relationship("Location", back_populates="merchant", lazy="raise")


class Location(Base):
    """A merchant storefront; belongs to exactly one merchant."""

    __tablename__ = "locations"

    id = Column(String(64), primary_key=True, default=generate_id)
    merchant_id = Column(String(64), ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False, index=True)
    place_id = Column(String, nullable=True)
    name = Column(String, nullable=False, default="", server_default="")
    address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    active = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    merchant = relationship("Merchant", back_populates="locations", lazy="raise")
