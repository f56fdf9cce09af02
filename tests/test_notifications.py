from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from conftest import T0
from pegplug_api.core.settings import Settings
from pegplug_api.models.notification import Notification, NotificationStatusEnum
from pegplug_api.observability.rewards import get_rewards_store
from pegplug_api.services.notifications.scheduler import (
    DAILY_SPINS_IDENTIFIER,
    NotificationScheduler,
    next_daily_reminder,
    reminder_time,
)
from pegplug_api.services.notifications.templates import (
    render_daily_spins,
    render_geofence_entry,
)
from pegplug_api.services.rewards.membership import MembershipService


class FailingBackend:
    async def deliver(self, scheduled_at, payload):
        raise RuntimeError("push gateway unavailable")


def test_reminder_time_leads_validity_by_ten_minutes():
    validity = T0 + timedelta(minutes=120)

    assert reminder_time(validity, T0) == T0 + timedelta(minutes=110)


def test_reminder_time_requires_minimum_delay():
    validity = T0 + timedelta(minutes=10, seconds=29)
    assert reminder_time(validity, T0) is None

    validity = T0 + timedelta(minutes=10, seconds=30)
    assert reminder_time(validity, T0) == T0 + timedelta(seconds=30)


def test_next_daily_reminder_rolls_to_tomorrow_after_the_hour():
    morning = datetime(2026, 3, 14, 8, 15, tzinfo=timezone.utc)
    assert next_daily_reminder(morning, 10) == datetime(2026, 3, 14, 10, 0, tzinfo=timezone.utc)

    on_the_hour = datetime(2026, 3, 14, 10, 0, tzinfo=timezone.utc)
    assert next_daily_reminder(on_the_hour, 10) == datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)


def test_geofence_entry_copy():
    single = render_geofence_entry("Bean There", ["Free Coffee"])
    assert single.title == "Lucky Spins at Bean There"
    assert single.body == "Try your luck at Bean There! Spin to win: Free Coffee"

    several = render_geofence_entry("  ", ["A", "B", "C"])
    assert several.title == "Lucky Spins at this location"
    assert several.body.endswith("one of 3 exclusive deals!")

    assert "1 daily spin is" in render_daily_spins(1).body
    assert "3 daily spins are" in render_daily_spins(3).body


@pytest.mark.asyncio
async def test_disabled_notifications_are_recorded_as_skipped(session_factory, push_backend):
    async with session_factory() as session:
        membership = MembershipService(session)
        await membership.ensure_user("member-1", now=T0)
        user = await membership.update_preferences("member-1", notifications_enabled=False)

        notification = await NotificationScheduler(session, push_backend).schedule_daily_spins_reminder(user, now=T0)
        await session.commit()

        assert notification.status == NotificationStatusEnum.SKIPPED.value
        assert push_backend.sent_messages == []

    assert get_rewards_store().snapshot().notifications["by_status"] == {"skipped": 1}


@pytest.mark.asyncio
async def test_daily_spins_reminder_is_delivered(session_factory, push_backend):
    async with session_factory() as session:
        user = await MembershipService(session).ensure_user("member-1", now=T0)

        notification = await NotificationScheduler(session, push_backend).schedule_daily_spins_reminder(user, now=T0)
        await session.commit()

        assert notification.status == NotificationStatusEnum.SENT.value
        scheduled_at, payload = push_backend.sent_messages[0]
        assert scheduled_at == datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)
        assert payload.identifier == DAILY_SPINS_IDENTIFIER
        assert payload.title == "Daily Spins Available!"


@pytest.mark.asyncio
async def test_backend_failure_is_recorded_not_raised(session_factory):
    async with session_factory() as session:
        user = await MembershipService(session).ensure_user("member-1", now=T0)

        notification = await NotificationScheduler(session, FailingBackend()).schedule_daily_spins_reminder(user, now=T0)
        await session.commit()

        stored = (await session.execute(select(Notification))).scalars().one()
        assert stored.id == notification.id
        assert stored.status == NotificationStatusEnum.FAILED.value
        assert "push gateway unavailable" in stored.error


@pytest.mark.asyncio
async def test_dry_run_keeps_notifications_pending(session_factory):
    async with session_factory() as session:
        user = await MembershipService(session).ensure_user("member-1", now=T0)
        scheduler = NotificationScheduler(session, config=Settings(notifications_dry_run=True))

        notification = await scheduler.schedule_daily_spins_reminder(user, now=T0)

        assert scheduler.backend is None
        assert notification.status == NotificationStatusEnum.PENDING.value
