from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class RewardsSnapshot:
    spins: Dict[str, int]
    redemptions: Dict[str, int]
    geofence: Dict[str, int]
    notifications: Dict[str, Dict[str, int]]

    def as_dict(self) -> Dict[str, object]:
        return {
            "spins": dict(self.spins),
            "redemptions": dict(self.redemptions),
            "geofence": dict(self.geofence),
            "notifications": {key: dict(value) for key, value in self.notifications.items()},
        }


class RewardsObservabilityStore:
    """Collect spin, redemption and geofence telemetry for dashboards."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._spins: Dict[str, int] = defaultdict(int)
        self._redemptions: Dict[str, int] = defaultdict(int)
        self._geofence: Dict[str, int] = defaultdict(int)
        self._notification_categories: Dict[str, int] = defaultdict(int)
        self._notification_statuses: Dict[str, int] = defaultdict(int)

    def record_spin(self, tier: str, won: bool) -> None:
        with self._lock:
            self._spins["total"] += 1
            self._spins[f"tier:{tier}"] += 1
            if won:
                self._spins["wins"] += 1
                self._spins[f"wins:{tier}"] += 1

    def record_redemption_event(self, event: str) -> None:
        with self._lock:
            self._redemptions[event] += 1

    def record_geofence_event(self, event: str, *, staged: int = 0) -> None:
        with self._lock:
            self._geofence[event] += 1
            if staged:
                self._geofence["staged_redemptions"] += staged

    def record_notification(self, category: str, status: str) -> None:
        with self._lock:
            self._notification_categories[category or "unknown"] += 1
            self._notification_statuses[status or "unknown"] += 1

    def snapshot(self) -> RewardsSnapshot:
        with self._lock:
            spins = dict(self._spins)
            redemptions = dict(self._redemptions)
            geofence = dict(self._geofence)
            notifications = {
                "by_category": dict(self._notification_categories),
                "by_status": dict(self._notification_statuses),
            }
        return RewardsSnapshot(
            spins=spins,
            redemptions=redemptions,
            geofence=geofence,
            notifications=notifications,
        )

    def reset(self) -> None:
        with self._lock:
            self._spins.clear()
            self._redemptions.clear()
            self._geofence.clear()
            self._notification_categories.clear()
            self._notification_statuses.clear()


_STORE = RewardsObservabilityStore()


def get_rewards_store() -> RewardsObservabilityStore:
    return _STORE


__all__ = ["get_rewards_store", "RewardsObservabilityStore", "RewardsSnapshot"]
