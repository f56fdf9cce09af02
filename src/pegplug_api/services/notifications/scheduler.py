"""Reminder timing and dispatch of reward notifications."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import ensure_aware, utcnow
from pegplug_api.core.settings import Settings, get_settings
from pegplug_api.models.deal import Deal
from pegplug_api.models.notification import (
    Notification,
    NotificationCategoryEnum,
    NotificationStatusEnum,
)
from pegplug_api.models.redemption import Redemption
from pegplug_api.models.user import User
from pegplug_api.observability.rewards import get_rewards_store

from .backend import LoggingNotificationBackend, NotificationBackend, NotificationPayload
from .templates import (
    RenderedTemplate,
    render_daily_spins,
    render_expiry_reminder,
    render_geofence_entry,
    render_spin_win,
)


DAILY_SPINS_IDENTIFIER = "daily-spins-reminder"


def reminder_time(
    validity_period: datetime,
    now: datetime,
    *,
    lead: timedelta = timedelta(minutes=10),
    min_delay: timedelta = timedelta(seconds=30),
) -> datetime | None:
    """Instant to remind before expiry, or ``None`` when it is too close to `now`."""

    fire_at = ensure_aware(validity_period) - lead
    if fire_at - ensure_aware(now) < min_delay:
        return None
    return fire_at


def next_daily_reminder(now: datetime, hour: int) -> datetime:
    """Next `hour`:00 UTC strictly after `now`."""

    moment = ensure_aware(now)
    candidate = moment.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= moment:
        candidate += timedelta(days=1)
    return candidate


class NotificationScheduler:
    """Persists notification requests and hands them to a push backend.

    Delivery is fire-and-forget: backend failures mark the row as failed and
    are logged, never raised to the caller.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        backend: Optional[NotificationBackend] = None,
        *,
        config: Settings | None = None,
    ) -> None:
        self._db = db_session
        self._settings = config or get_settings()
        self._backend = backend if backend is not None else self._build_default_backend()

    @property
    def backend(self) -> Optional[NotificationBackend]:
        return self._backend

    def _build_default_backend(self) -> Optional[NotificationBackend]:
        if self._settings.notifications_dry_run:
            return None
        return LoggingNotificationBackend()

    def expiry_reminder_time(self, redemption: Redemption, now: datetime) -> datetime | None:
        return reminder_time(
            redemption.validity_period,
            now,
            lead=timedelta(minutes=self._settings.reminder_lead_minutes),
            min_delay=timedelta(seconds=self._settings.reminder_min_delay_seconds),
        )

    async def schedule_expiry_reminder(
        self,
        user: User,
        redemption: Redemption,
        *,
        deal_title: str | None,
        now: datetime | None = None,
    ) -> Notification | None:
        reference = now or utcnow()
        fire_at = self.expiry_reminder_time(redemption, reference)
        if fire_at is None:
            logger.debug(
                "Expiry reminder skipped; lead time elapsed",
                redemption_id=redemption.id,
                validity_period=ensure_aware(redemption.validity_period).isoformat(),
            )
            return None

        notification = await self._dispatch(
            user,
            render_expiry_reminder(deal_title),
            category=NotificationCategoryEnum.EXPIRY_REMINDER,
            identifier=f"expiry-{redemption.id}",
            scheduled_at=fire_at,
            data={"redemptionId": redemption.id, "dealId": redemption.deal_id},
        )
        if notification.status == NotificationStatusEnum.SENT.value:
            redemption.notification_sent = True
        return notification

    async def send_geofence_entry(
        self,
        user: User,
        *,
        merchant_id: str,
        merchant_name: str | None,
        location_id: str,
        deals: Sequence[Deal],
    ) -> Notification | None:
        if not deals:
            return None

        data: dict[str, Any] = {"merchantId": merchant_id, "locationId": location_id}
        if len(deals) == 1:
            data["dealId"] = deals[0].id
        else:
            data["dealCount"] = len(deals)

        return await self._dispatch(
            user,
            render_geofence_entry(merchant_name, [deal.title for deal in deals]),
            category=NotificationCategoryEnum.GEOFENCE_ENTRY,
            identifier=f"geofence-{merchant_id}_{location_id}",
            scheduled_at=None,
            data=data,
        )

    async def send_spin_win(self, user: User, deal: Deal, *, merchant_name: str | None) -> Notification:
        return await self._dispatch(
            user,
            render_spin_win(deal.title, merchant_name),
            category=NotificationCategoryEnum.SPIN_WIN,
            identifier=f"spin-win-{deal.id}",
            scheduled_at=None,
            data={"dealId": deal.id, "merchantId": deal.merchant_id},
        )

    async def schedule_daily_spins_reminder(self, user: User, *, now: datetime | None = None) -> Notification:
        reference = now or utcnow()
        fire_at = next_daily_reminder(reference, self._settings.daily_spins_reminder_hour)
        return await self._dispatch(
            user,
            render_daily_spins(max(user.available_spins or 0, 1)),
            category=NotificationCategoryEnum.DAILY_SPINS,
            identifier=DAILY_SPINS_IDENTIFIER,
            scheduled_at=fire_at,
            data={"spins": user.available_spins or 0},
        )

    async def _dispatch(
        self,
        user: User,
        template: RenderedTemplate,
        *,
        category: NotificationCategoryEnum,
        identifier: str,
        scheduled_at: datetime | None,
        data: dict[str, Any],
    ) -> Notification:
        notification = Notification(
            user_id=user.id,
            category=category.value,
            identifier=identifier,
            title=template.title,
            body=template.body,
            payload=data,
            scheduled_at=scheduled_at,
        )

        if not user.notifications_enabled:
            notification.status = NotificationStatusEnum.SKIPPED.value
            notification.error = "notifications disabled by user"
        elif self._backend is None:
            notification.status = NotificationStatusEnum.PENDING.value
        else:
            payload = NotificationPayload(
                identifier=identifier,
                category=category.value,
                title=template.title,
                body=template.body,
                recipient=user.push_token,
                data=data,
            )
            try:
                await self._backend.deliver(scheduled_at, payload)
            except Exception as exc:  # noqa: BLE001 - delivery is best effort
                notification.status = NotificationStatusEnum.FAILED.value
                notification.error = str(exc)
                logger.warning(
                    "Notification delivery failed",
                    user_id=user.id,
                    category=category.value,
                    identifier=identifier,
                    error=str(exc),
                )
            else:
                notification.status = NotificationStatusEnum.SENT.value
                notification.sent_at = utcnow()

        self._db.add(notification)
        await self._db.flush()
        get_rewards_store().record_notification(category.value, notification.status)
        return notification


__all__ = [
    "DAILY_SPINS_IDENTIFIER",
    "NotificationScheduler",
    "next_daily_reminder",
    "reminder_time",
]
