from datetime import timedelta

import pytest

from conftest import T0, seed_merchant
from pegplug_api.domain.errors import DealNotFoundError, OutOfRangeError
from pegplug_api.domain.regions import Coordinate, distance_meters, miles_to_meters
from pegplug_api.services.redemptions.claims import InPersonRedemptionService
from pegplug_api.services.redemptions.history import RedemptionFilterEnum, RedemptionHistoryService
from pegplug_api.services.redemptions.ledger import RedemptionLedger


USER_ID = "member-1"
DOWNTOWN = (40.7128, -74.0060)
MIDTOWN = (40.7549, -73.9840)


def test_distance_and_radius_conversion():
    downtown = Coordinate(*DOWNTOWN)
    midtown = Coordinate(*MIDTOWN)

    assert distance_meters(downtown, downtown) == pytest.approx(0.0)
    assert 4_900 < distance_meters(downtown, midtown) < 5_200
    assert miles_to_meters(0.5) == pytest.approx(804.67)


@pytest.mark.asyncio
async def test_redeem_in_range_uses_closest_location(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session, coordinates=(DOWNTOWN, MIDTOWN))
        service = InPersonRedemptionService(session, RedemptionLedger(session))

        near_midtown = Coordinate(latitude=40.7551, longitude=-73.9842)
        redemption = await service.redeem_deal(USER_ID, seeded.deals[0].id, near_midtown, now=T0, device_id="ios-1")

        assert redemption.location_id == seeded.locations[1].id
        assert redemption.device_id == "ios-1"
        assert redemption.redemption_latitude == pytest.approx(40.7551)


@pytest.mark.asyncio
async def test_redeem_out_of_range_is_rejected(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session, coordinates=(DOWNTOWN,))
        service = InPersonRedemptionService(session, RedemptionLedger(session))

        with pytest.raises(OutOfRangeError) as excinfo:
            await service.redeem_deal(USER_ID, seeded.deals[0].id, Coordinate(*MIDTOWN), now=T0)

        assert excinfo.value.context["distance_meters"] > miles_to_meters(0.5)
        assert await RedemptionLedger(session).list_redemptions(USER_ID, now=T0) == []


@pytest.mark.asyncio
async def test_redeem_inactive_deal_is_not_found(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session)
        deal = seeded.deals[0]
        deal.active = False
        await session.commit()

        service = InPersonRedemptionService(session, RedemptionLedger(session))
        with pytest.raises(DealNotFoundError):
            await service.redeem_deal(USER_ID, deal.id, Coordinate(*DOWNTOWN), now=T0)


@pytest.mark.asyncio
async def test_history_counts_and_filters(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session, deal_titles=("Coffee", "Bagel", "Muffin"))
        ledger = RedemptionLedger(session)
        coffee, bagel, muffin = [
            await ledger.create_pending_redemption(
                USER_ID,
                deal,
                seeded.merchant.id,
                seeded.location.id,
                now=T0 + timedelta(minutes=index),
            )
            for index, deal in enumerate(seeded.deals)
        ]
        await ledger.complete_redemption(coffee.id, now=T0 + timedelta(minutes=5))
        await ledger.cancel_redemption(bagel.id, now=T0 + timedelta(minutes=6))

        history = await RedemptionHistoryService(session, ledger).load_history(USER_ID, now=T0 + timedelta(minutes=10))

        assert history.counts == {"active": 1, "completed": 1, "expired": 1}
        assert [item.redemption.id for item in history.items] == [muffin.id, bagel.id, coffee.id]
        active = history.filtered(RedemptionFilterEnum.ACTIVE)
        assert [item.redemption.id for item in active] == [muffin.id]
        assert active[0].deal.title == "Muffin"
        assert active[0].merchant.id == seeded.merchant.id
        assert active[0].location.id == seeded.location.id
        assert active[0].remaining_time(T0 + timedelta(minutes=10)) == timedelta(minutes=112)
        assert len(history.filtered(None)) == 3


@pytest.mark.asyncio
async def test_history_heals_lapsed_rows(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session)
        ledger = RedemptionLedger(session)
        await ledger.create_pending_redemption(USER_ID, seeded.deals[0], seeded.merchant.id, seeded.location.id, now=T0)

        history = await RedemptionHistoryService(session, ledger).load_history(USER_ID, now=T0 + timedelta(hours=3))

        assert history.counts == {"active": 0, "completed": 0, "expired": 1}
        assert history.items[0].remaining_time(T0 + timedelta(hours=3)) == timedelta(0)
