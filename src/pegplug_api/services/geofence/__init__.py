"""Geofence region tracking and entry-triggered rewards."""

from .service import GeofenceService, InMemoryGeofenceService, get_geofence_service
from .trigger import GeofenceEntryResult, GeofenceRewardTrigger

__all__ = [
    "GeofenceEntryResult",
    "GeofenceRewardTrigger",
    "GeofenceService",
    "InMemoryGeofenceService",
    "get_geofence_service",
]
