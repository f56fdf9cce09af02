"""Stages pending redemptions when a user walks into a merchant location."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.core.settings import get_settings
from pegplug_api.domain.errors import AlreadyRedeemedError, RewardError
from pegplug_api.domain.regions import Coordinate, GeofenceRegion, RegionKey, location_coordinate, miles_to_meters
from pegplug_api.models.deal import Deal
from pegplug_api.models.notification import Notification
from pegplug_api.models.redemption import Redemption
from pegplug_api.observability.rewards import get_rewards_store
from pegplug_api.services.deals import DealCatalog
from pegplug_api.services.notifications.scheduler import NotificationScheduler
from pegplug_api.services.redemptions.ledger import RedemptionLedger
from pegplug_api.services.rewards.membership import MembershipService

from .service import GeofenceService


@dataclass
class GeofenceEntryResult:
    key: RegionKey | None
    deals: list[Deal] = field(default_factory=list)
    redemptions: list[Redemption] = field(default_factory=list)
    skipped_deal_ids: list[str] = field(default_factory=list)
    notification: Notification | None = None
    error: str | None = None


class GeofenceRewardTrigger:
    """Maps region entry events onto qualifying deals.

    Failures are logged and reported on the result; they never propagate to
    the location callback that fired the event.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        geofence: GeofenceService,
        ledger: RedemptionLedger | None = None,
        catalog: DealCatalog | None = None,
        scheduler: NotificationScheduler | None = None,
        membership: MembershipService | None = None,
    ) -> None:
        self._db = db_session
        self._geofence = geofence
        self._scheduler = scheduler
        self._ledger = ledger or RedemptionLedger(db_session, scheduler)
        self._catalog = catalog or DealCatalog(db_session)
        self._membership = membership or MembershipService(db_session)

    async def on_region_entered(
        self,
        user_id: str,
        region_identifier: str,
        coordinate: Coordinate | None = None,
        *,
        now: datetime | None = None,
    ) -> GeofenceEntryResult:
        """Entry event carrying the legacy `"{merchant}_{location}"` identifier."""

        try:
            key = RegionKey.parse(region_identifier)
        except ValueError as exc:
            logger.warning("Ignoring malformed region identifier", user_id=user_id, region=region_identifier)
            return GeofenceEntryResult(key=None, error=str(exc))
        return await self.on_location_entered(user_id, key.merchant_id, key.location_id, coordinate, now=now)

    async def on_location_entered(
        self,
        user_id: str,
        merchant_id: str,
        location_id: str,
        coordinate: Coordinate | None = None,
        *,
        now: datetime | None = None,
    ) -> GeofenceEntryResult:
        reference = now or utcnow()
        try:
            key = RegionKey(merchant_id=merchant_id, location_id=location_id)
        except ValueError as exc:
            logger.warning("Ignoring invalid region", user_id=user_id, merchant_id=merchant_id, location_id=location_id)
            return GeofenceEntryResult(key=None, error=str(exc))

        self._geofence.enter(user_id, key)
        result = GeofenceEntryResult(key=key)
        store = get_rewards_store()
        try:
            await self._stage(user_id, key, coordinate, reference, result)
        except (RewardError, SQLAlchemyError) as exc:
            result.error = str(exc)
            store.record_geofence_event("failed")
            logger.warning(
                "Geofence entry handling failed",
                user_id=user_id,
                region=key.identifier,
                error=str(exc),
            )
            return result

        store.record_geofence_event("entered", staged=len(result.redemptions))
        logger.info(
            "Geofence entry handled",
            user_id=user_id,
            region=key.identifier,
            deals=len(result.deals),
            staged=len(result.redemptions),
            skipped=len(result.skipped_deal_ids),
        )
        return result

    async def _stage(
        self,
        user_id: str,
        key: RegionKey,
        coordinate: Coordinate | None,
        reference: datetime,
        result: GeofenceEntryResult,
    ) -> None:
        result.deals = await self._catalog.active_deals_for_location(
            key.merchant_id,
            key.location_id,
            now=reference,
        )
        if not result.deals:
            return

        user = await self._membership.ensure_user(user_id, now=reference)
        for deal in result.deals:
            try:
                redemption = await self._ledger.create_pending_redemption(
                    user_id,
                    deal,
                    key.merchant_id,
                    key.location_id,
                    coordinate,
                    now=reference,
                )
            except AlreadyRedeemedError:
                result.skipped_deal_ids.append(deal.id)
                continue
            except RewardError as exc:
                result.skipped_deal_ids.append(deal.id)
                logger.warning("Failed to stage redemption", user_id=user_id, deal_id=deal.id, error=str(exc))
                continue
            result.redemptions.append(redemption)

        # One entry notification per event, over every active deal.
        if self._scheduler is not None:
            merchant = await self._catalog.get_merchant(key.merchant_id)
            result.notification = await self._scheduler.send_geofence_entry(
                user,
                merchant_id=key.merchant_id,
                merchant_name=merchant.name,
                location_id=key.location_id,
                deals=result.deals,
            )
        await self._db.commit()

    async def on_location_exited(self, user_id: str, merchant_id: str, location_id: str) -> None:
        try:
            key = RegionKey(merchant_id=merchant_id, location_id=location_id)
        except ValueError:
            logger.warning("Ignoring invalid region exit", user_id=user_id, merchant_id=merchant_id, location_id=location_id)
            return
        self._geofence.exit(user_id, key)
        get_rewards_store().record_geofence_event("exited")
        logger.debug("Geofence exit", user_id=user_id, region=key.identifier)

    async def on_region_exited(self, user_id: str, region_identifier: str) -> None:
        try:
            key = RegionKey.parse(region_identifier)
        except ValueError:
            logger.warning("Ignoring malformed region identifier", user_id=user_id, region=region_identifier)
            return
        await self.on_location_exited(user_id, key.merchant_id, key.location_id)

    async def list_regions(self) -> list[GeofenceRegion]:
        """One region per active location of every active merchant."""

        merchants = {merchant.id: merchant for merchant in await self._catalog.list_active_merchants()}
        locations = await self._catalog.list_active_locations(list(merchants))
        fallback_radius = get_settings().default_geofence_radius_miles
        regions: list[GeofenceRegion] = []
        for location in locations:
            merchant = merchants[location.merchant_id]
            try:
                key = RegionKey(merchant_id=merchant.id, location_id=location.id)
            except ValueError:
                logger.warning("Skipping region with unsupported id", merchant_id=merchant.id, location_id=location.id)
                continue
            radius = merchant.geofence_radius or fallback_radius
            regions.append(
                GeofenceRegion(
                    key=key,
                    center=location_coordinate(location),
                    radius_meters=miles_to_meters(radius),
                )
            )
        return regions


__all__ = ["GeofenceEntryResult", "GeofenceRewardTrigger"]
