"""Injectable collaborators; tests override these via `dependency_overrides`."""

from __future__ import annotations

from pegplug_api.core.settings import settings
from pegplug_api.db.session import async_session
from pegplug_api.domain.reward_policy import RewardRules
from pegplug_api.domain.spin_engine import SpinEngine
from pegplug_api.services.feed import SessionFactory
from pegplug_api.services.geofence.service import GeofenceService, get_geofence_service
from pegplug_api.services.notifications.backend import LoggingNotificationBackend, NotificationBackend


_BACKEND = LoggingNotificationBackend()


def get_notification_backend() -> NotificationBackend | None:
    if settings.notifications_dry_run:
        return None
    return _BACKEND


def get_geofence() -> GeofenceService:
    return get_geofence_service()


def get_spin_engine() -> SpinEngine:
    return SpinEngine(rules=RewardRules.from_settings())


def get_session_factory() -> SessionFactory:
    return async_session
