from datetime import timedelta

import pytest

from conftest import T0, seed_merchant
from pegplug_api.models.merchant import Merchant
from pegplug_api.services.deals import DealCatalog, chunked
from pegplug_api.services.feed import load_home_feed
from pegplug_api.services.redemptions.ledger import RedemptionLedger


def test_chunked_splits_and_deduplicates():
    assert list(chunked(["a", "b", "a", "c", "d"], 2)) == [["a", "b"], ["c", "d"]]
    assert list(chunked([], 10)) == []


@pytest.mark.asyncio
async def test_active_deals_respect_location_and_schedule(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session, coordinates=((40.71, -74.0), (40.75, -73.98)))
        catalog = DealCatalog(session)
        scheduled = await catalog.register_deal(
            merchant_id=seeded.merchant.id,
            title="Weekend Only",
            location_ids=[seeded.locations[1].id],
            start_date=T0 + timedelta(days=1),
        )
        await session.commit()

        first = await catalog.active_deals_for_location(seeded.merchant.id, seeded.locations[0].id, now=T0)
        second_now = await catalog.active_deals_for_location(seeded.merchant.id, seeded.locations[1].id, now=T0)
        second_later = await catalog.active_deals_for_location(
            seeded.merchant.id,
            seeded.locations[1].id,
            now=T0 + timedelta(days=2),
        )

        assert [deal.id for deal in first] == [seeded.deals[0].id]
        assert scheduled.id not in {deal.id for deal in second_now}
        assert scheduled.id in {deal.id for deal in second_later}


@pytest.mark.asyncio
async def test_register_deal_rejects_foreign_locations(session_factory):
    async with session_factory() as session:
        ours = await seed_merchant(session, name="Ours")
        theirs = await seed_merchant(session, name="Theirs")

        with pytest.raises(ValueError):
            await DealCatalog(session).register_deal(
                merchant_id=ours.merchant.id,
                title="Stolen",
                location_ids=[theirs.location.id],
            )


@pytest.mark.asyncio
async def test_fetch_by_ids_spans_chunks(session_factory):
    async with session_factory() as session:
        seeded = await seed_merchant(session, deal_titles=tuple(f"Deal {index}" for index in range(5)))

        found = await DealCatalog(session, chunk_size=2).fetch_deals(deal.id for deal in seeded.deals)

        assert set(found) == {deal.id for deal in seeded.deals}


@pytest.mark.asyncio
async def test_home_feed_combines_catalog_and_active_redemptions(session_factory):
    async with session_factory() as session:
        bean = await seed_merchant(session, name="Bean There", deal_titles=("Coffee", "Bagel"))
        await seed_merchant(session, name="Crust", deal_titles=("Slice",))
        hidden = Merchant(name="Closed", active=False)
        session.add(hidden)
        await session.commit()

        await RedemptionLedger(session).create_pending_redemption(
            "member-1",
            bean.deals[1],
            bean.merchant.id,
            bean.location.id,
            now=T0,
        )

    feed = await load_home_feed(session_factory, "member-1", now=T0 + timedelta(minutes=1))

    assert [merchant.name for merchant in feed.merchants.values()] == ["Bean There", "Crust"]
    assert len(feed.deals) == 3
    assert {deal.title for deal in feed.deals_for_merchant(bean.merchant.id)} == {"Coffee", "Bagel"}
    assert len(feed.locations) == 2
    assert list(feed.active_redemptions) == [bean.deals[1].id]
