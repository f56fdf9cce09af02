"""Tracks which monitored regions a user is currently inside."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Protocol, Set

from pegplug_api.domain.regions import RegionKey


class GeofenceService(Protocol):
    """Region membership as reported by the device's location services."""

    def enter(self, user_id: str, key: RegionKey) -> None:
        ...

    def exit(self, user_id: str, key: RegionKey) -> None:
        ...

    def inside(self, user_id: str) -> Set[RegionKey]:
        ...


class InMemoryGeofenceService:
    """Process-local region membership, keyed by user."""

    def __init__(self) -> None:
        self._inside: Dict[str, Set[RegionKey]] = defaultdict(set)

    def enter(self, user_id: str, key: RegionKey) -> None:
        self._inside[user_id].add(key)

    def exit(self, user_id: str, key: RegionKey) -> None:
        regions = self._inside.get(user_id)
        if regions is None:
            return
        regions.discard(key)
        if not regions:
            del self._inside[user_id]

    def inside(self, user_id: str) -> Set[RegionKey]:
        return set(self._inside.get(user_id, ()))

    def is_inside(self, user_id: str, key: RegionKey) -> bool:
        return key in self._inside.get(user_id, ())

    def reset(self) -> None:
        self._inside.clear()


_SERVICE = InMemoryGeofenceService()


def get_geofence_service() -> InMemoryGeofenceService:
    return _SERVICE


__all__ = ["GeofenceService", "InMemoryGeofenceService", "get_geofence_service"]
