"""Home feed assembled from independent concurrent reads."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.models.deal import Deal
from pegplug_api.models.merchant import Location, Merchant
from pegplug_api.models.redemption import Redemption
from pegplug_api.services.deals import DealCatalog
from pegplug_api.services.redemptions.ledger import RedemptionLedger


SessionFactory = Callable[[], AsyncSession]


@dataclass
class HomeFeed:
    deals: list[Deal] = field(default_factory=list)
    merchants: dict[str, Merchant] = field(default_factory=dict)
    locations: dict[str, Location] = field(default_factory=dict)
    active_redemptions: dict[str, Redemption] = field(default_factory=dict)

    def deals_for_merchant(self, merchant_id: str) -> list[Deal]:
        return [deal for deal in self.deals if deal.merchant_id == merchant_id]


async def load_home_feed(
    session_factory: SessionFactory,
    user_id: str,
    *,
    now: datetime | None = None,
) -> HomeFeed:
    """Fetch deals, merchants, locations and active redemptions concurrently.

    Each read gets its own session; an `AsyncSession` cannot be shared
    between concurrent tasks.
    """

    reference = now or utcnow()

    async def _deals() -> list[Deal]:
        async with session_factory() as session:
            return await DealCatalog(session).list_active_deals(now=reference)

    async def _merchants() -> list[Merchant]:
        async with session_factory() as session:
            return await DealCatalog(session).list_active_merchants()

    async def _locations() -> list[Location]:
        async with session_factory() as session:
            return await DealCatalog(session).list_active_locations()

    async def _active() -> list[Redemption]:
        async with session_factory() as session:
            return await RedemptionLedger(session).list_active_redemptions(user_id, now=reference)

    deals, merchants, locations, active = await asyncio.gather(_deals(), _merchants(), _locations(), _active())

    merchant_index = {merchant.id: merchant for merchant in merchants}
    return HomeFeed(
        deals=[deal for deal in deals if deal.merchant_id in merchant_index],
        merchants=merchant_index,
        locations={location.id: location for location in locations if location.merchant_id in merchant_index},
        active_redemptions={redemption.deal_id: redemption for redemption in active},
    )


__all__ = ["HomeFeed", "SessionFactory", "load_home_feed"]
