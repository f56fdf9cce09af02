from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import T0
from pegplug_api.core.clock import ensure_aware
from pegplug_api.domain.errors import InsufficientSpinsError, StoreUnavailableError, UserNotFoundError
from pegplug_api.models.merchant import Merchant
from pegplug_api.models.user import MembershipTierEnum, User
from pegplug_api.services.rewards.membership import MembershipService


@pytest.mark.asyncio
async def test_first_touch_creates_basic_member_with_daily_spin(session_factory):
    async with session_factory() as session:
        service = MembershipService(session)

        user = await service.touch("member-1", now=T0)

        assert user.membership_tier == MembershipTierEnum.BASIC.value
        assert user.available_spins == 1
        assert ensure_aware(user.last_spin_date) == T0

        again = await service.ensure_user("member-1", now=T0 + timedelta(hours=1))
        assert again is user


@pytest.mark.asyncio
async def test_touch_on_next_day_refreshes_spins(session_factory):
    async with session_factory() as session:
        service = MembershipService(session)
        await service.ensure_user("member-1", now=T0)
        await service.use_spins("member-1")
        await session.commit()

        same_day = await service.touch("member-1", now=T0 + timedelta(hours=6))
        assert same_day.available_spins == 0

        next_day = await service.touch("member-1", now=T0 + timedelta(days=1))
        await session.commit()
        assert next_day.available_spins == 1
        assert ensure_aware(next_day.last_spin_date) == T0 + timedelta(days=1)


@pytest.mark.asyncio
async def test_upgrade_tops_up_to_premium_allotment(session_factory):
    async with session_factory() as session:
        service = MembershipService(session)
        await service.ensure_user("member-1", now=T0)
        exhausted = await service.use_spins("member-1")
        await session.commit()
        assert exhausted.available_spins == 0

        upgraded = await service.upgrade_to_premium("member-1")
        await session.commit()

        assert upgraded.membership_tier == MembershipTierEnum.PREMIUM.value
        assert upgraded.available_spins == 3

    async with session_factory() as session:
        stored = await MembershipService(session).get_user("member-1")
        assert stored.membership_tier == MembershipTierEnum.PREMIUM.value
        assert stored.available_spins == 3


@pytest.mark.asyncio
async def test_use_spins_rejects_overdraw(session_factory):
    async with session_factory() as session:
        service = MembershipService(session)
        await service.ensure_user("member-1", now=T0)

        with pytest.raises(InsufficientSpinsError):
            await service.use_spins("member-1", count=2)

        user = await service.get_user("member-1")
        assert user.available_spins == 1

        with pytest.raises(ValueError):
            await service.use_spins("member-1", count=0)


@pytest.mark.asyncio
async def test_preferences_and_missing_users(session_factory):
    async with session_factory() as session:
        service = MembershipService(session)
        await service.ensure_user("member-1", now=T0)

        user = await service.update_preferences("member-1", notifications_enabled=False, push_token="tok-1")
        await session.commit()
        assert user.notifications_enabled is False
        assert user.push_token == "tok-1"

        cleared = await service.update_preferences("member-1", push_token="")
        assert cleared.push_token is None
        assert cleared.notifications_enabled is False

        with pytest.raises(UserNotFoundError):
            await service.get_user("ghost")


@pytest.mark.asyncio
async def test_stale_spin_balance_write_is_rejected(session_factory):
    async with session_factory() as session:
        service = MembershipService(session)
        await service.ensure_user("member-1", now=T0)
        await service.upgrade_to_premium("member-1")
        await session.commit()

    async with session_factory() as first, session_factory() as second:
        winner = MembershipService(first)
        loser = MembershipService(second)
        await winner.get_user("member-1")
        await loser.get_user("member-1")

        spent = await winner.use_spins("member-1")
        await first.commit()
        assert spent.available_spins == 2

        with pytest.raises(StoreUnavailableError) as excinfo:
            await loser.use_spins("member-1")
        assert excinfo.value.code == "store_unavailable"

    async with session_factory() as session:
        stored = await MembershipService(session).get_user("member-1")
        assert stored.available_spins == 2


@pytest.mark.asyncio
async def test_ensure_user_leaves_commit_to_caller(session_factory):
    async with session_factory() as session:
        user = await MembershipService(session).ensure_user("member-1", now=T0)
        assert user.available_spins == 1
        await session.rollback()

    async with session_factory() as session:
        with pytest.raises(UserNotFoundError):
            await MembershipService(session).get_user("member-1")


@pytest.mark.asyncio
async def test_first_touch_race_keeps_callers_pending_work(session_factory, monkeypatch):
    async with session_factory() as session:
        await MembershipService(session).ensure_user("member-1", now=T0)
        await session.commit()

    real_get = AsyncSession.get
    missed = []

    async def miss_first_user_lookup(self, entity, ident, **kwargs):
        if entity is User and not missed:
            missed.append(ident)
            return None
        return await real_get(self, entity, ident, **kwargs)

    monkeypatch.setattr(AsyncSession, "get", miss_first_user_lookup)

    async with session_factory() as session:
        merchant = Merchant(name="Late Arrival", active=True, geofence_radius=0.5)
        session.add(merchant)
        await session.flush()

        user = await MembershipService(session).ensure_user("member-1", now=T0 + timedelta(hours=1))
        await session.commit()

        assert missed == ["member-1"]
        assert ensure_aware(user.last_spin_date) == T0

    async with session_factory() as session:
        assert await session.get(Merchant, merchant.id) is not None
