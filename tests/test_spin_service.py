import random
from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import T0, seed_merchant
from pegplug_api.domain.errors import InsufficientSpinsError, InvalidTransitionError, NoDealsAvailableError
from pegplug_api.domain.spin_engine import SpinEngine
from pegplug_api.models.notification import NotificationCategoryEnum
from pegplug_api.models.spin import Spin
from pegplug_api.observability.rewards import get_rewards_store
from pegplug_api.services.notifications.scheduler import NotificationScheduler
from pegplug_api.services.rewards.membership import MembershipService
from pegplug_api.services.rewards.spins import SpinService


USER_ID = "spinner-1"


class FixedRoll(random.Random):
    def __init__(self, roll: float) -> None:
        super().__init__(11)
        self._roll = roll

    def random(self) -> float:
        return self._roll


def _service(session, roll: float, backend=None) -> SpinService:
    scheduler = NotificationScheduler(session, backend) if backend is not None else None
    return SpinService(session, engine=SpinEngine(rng=FixedRoll(roll)), scheduler=scheduler)


@pytest.mark.asyncio
async def test_winning_spin_is_recorded_and_announced(session_factory, push_backend):
    async with session_factory() as session:
        seeded = await seed_merchant(session)

        result = await _service(session, 0.01, push_backend).spin(
            USER_ID, seeded.merchant.id, seeded.location.id, now=T0
        )

        assert result.won is True
        assert result.deal.id == seeded.deals[0].id
        assert result.user.available_spins == 0
        stored = (await session.execute(select(Spin))).scalars().one()
        assert stored.won is True
        assert stored.deal_id == seeded.deals[0].id
        wins = push_backend.by_category(NotificationCategoryEnum.SPIN_WIN.value)
        assert len(wins) == 1
        assert wins[0][1].title == "Lucky Spin Winner!"

    assert get_rewards_store().snapshot().spins == {"total": 1, "tier:basic": 1, "wins": 1, "wins:basic": 1}


@pytest.mark.asyncio
async def test_spin_without_balance_is_rejected(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session)
        service = _service(session, 0.99)
        await service.spin(USER_ID, seeded.merchant.id, seeded.location.id, now=T0)

        with pytest.raises(InsufficientSpinsError):
            await service.spin(USER_ID, seeded.merchant.id, seeded.location.id, now=T0 + timedelta(minutes=1))

        user = await MembershipService(session).get_user(USER_ID)
        assert user.available_spins == 0
        spins = await service.list_spins(USER_ID)
        assert len(spins) == 1

        tomorrow = await service.spin(USER_ID, seeded.merchant.id, seeded.location.id, now=T0 + timedelta(days=1))
        assert tomorrow.user.available_spins == 0


@pytest.mark.asyncio
async def test_spin_at_location_without_deals_keeps_balance(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session)
        service = _service(session, 0.01)

        with pytest.raises(NoDealsAvailableError):
            await service.spin(USER_ID, seeded.merchant.id, "elsewhere", now=T0)

        user = await MembershipService(session).get_user(USER_ID)
        assert user.available_spins == 1


@pytest.mark.asyncio
async def test_claim_turns_win_into_single_redemption(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session)
        service = _service(session, 0.01)
        result = await service.spin(USER_ID, seeded.merchant.id, seeded.location.id, now=T0)

        first = await service.claim(USER_ID, result.spin.id, now=T0 + timedelta(minutes=1))
        second = await service.claim(USER_ID, result.spin.id, now=T0 + timedelta(minutes=2))

        assert first.id == second.id
        assert first.deal_id == seeded.deals[0].id
        spin = await service.get_spin(result.spin.id, user_id=USER_ID)
        assert spin.redemption_id == first.id


@pytest.mark.asyncio
async def test_losing_spin_cannot_be_claimed(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session)
        service = _service(session, 0.99)
        result = await service.spin(USER_ID, seeded.merchant.id, seeded.location.id, now=T0)

        assert result.won is False
        with pytest.raises(InvalidTransitionError):
            await service.claim(USER_ID, result.spin.id, now=T0)
