"""In-person redemption of a deal at the nearest merchant location."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.core.settings import get_settings
from pegplug_api.domain.errors import DealNotFoundError, OutOfRangeError
from pegplug_api.domain.regions import Coordinate, closest_location, miles_to_meters
from pegplug_api.models.deal import Deal
from pegplug_api.models.merchant import Location, Merchant
from pegplug_api.models.redemption import Redemption
from pegplug_api.services.deals import DealCatalog

from .ledger import RedemptionLedger


@dataclass(frozen=True)
class RangeCheck:
    location: Location | None
    distance_meters: float | None
    radius_meters: float

    @property
    def in_range(self) -> bool:
        return (
            self.location is not None
            and self.distance_meters is not None
            and self.distance_meters <= self.radius_meters
        )


class InPersonRedemptionService:
    """Stages a redemption when the user stands within the merchant's radius."""

    def __init__(
        self,
        db_session: AsyncSession,
        ledger: RedemptionLedger,
        *,
        catalog: DealCatalog | None = None,
    ) -> None:
        self._db = db_session
        self._ledger = ledger
        self._catalog = catalog or DealCatalog(db_session)

    async def check_range(self, deal: Deal, merchant: Merchant, coordinate: Coordinate) -> RangeCheck:
        locations = await self._catalog.fetch_locations(deal.location_ids or [])
        candidates = [location for location in locations.values() if location.active]
        radius = miles_to_meters(merchant.geofence_radius or get_settings().default_geofence_radius_miles)
        closest = closest_location(candidates, coordinate)
        if closest is None:
            return RangeCheck(location=None, distance_meters=None, radius_meters=radius)
        location, distance = closest
        return RangeCheck(location=location, distance_meters=distance, radius_meters=radius)

    async def redeem_deal(
        self,
        user_id: str,
        deal_id: str,
        coordinate: Coordinate,
        *,
        now: datetime | None = None,
        device_id: str = "",
    ) -> Redemption:
        reference = now or utcnow()
        deal = await self._catalog.get_deal(deal_id)
        if not deal.is_active_at(reference):
            raise DealNotFoundError("Deal is no longer available", deal_id=deal_id)
        merchant = await self._catalog.get_merchant(deal.merchant_id)

        check = await self.check_range(deal, merchant, coordinate)
        if not check.in_range or check.location is None:
            logger.info(
                "Redemption attempted out of range",
                user_id=user_id,
                deal_id=deal_id,
                distance_meters=check.distance_meters,
                radius_meters=check.radius_meters,
            )
            raise OutOfRangeError(
                user_id=user_id,
                deal_id=deal_id,
                distance_meters=round(check.distance_meters, 1) if check.distance_meters is not None else None,
            )

        return await self._ledger.create_pending_redemption(
            user_id,
            deal,
            deal.merchant_id,
            check.location.id,
            coordinate,
            now=reference,
            device_id=device_id,
        )


__all__ = ["InPersonRedemptionService", "RangeCheck"]
