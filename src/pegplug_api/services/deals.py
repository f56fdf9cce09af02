"""Read access to merchants, locations and deals."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator, Sequence, TypeVar

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.core.settings import get_settings
from pegplug_api.domain.errors import DealNotFoundError, NotFoundError, StoreUnavailableError
from pegplug_api.models.deal import Deal
from pegplug_api.models.merchant import Location, Merchant


ModelT = TypeVar("ModelT", Deal, Merchant, Location)


def chunked(values: Iterable[str], size: int) -> Iterator[list[str]]:
    """Yield de-duplicated ids in chunks of at most `size`."""

    unique = list(dict.fromkeys(value for value in values if value))
    for start in range(0, len(unique), size):
        yield unique[start : start + size]


class DealCatalog:
    """Merchant, location and deal lookups used by the reward flows."""

    def __init__(self, db_session: AsyncSession, *, chunk_size: int | None = None) -> None:
        self._db = db_session
        self._chunk_size = chunk_size or get_settings().lookup_chunk_size

    async def get_deal(self, deal_id: str) -> Deal:
        deal = await self._get(Deal, deal_id, "get_deal")
        if deal is None:
            raise DealNotFoundError(deal_id=deal_id)
        return deal

    async def get_merchant(self, merchant_id: str) -> Merchant:
        merchant = await self._get(Merchant, merchant_id, "get_merchant")
        if merchant is None:
            raise NotFoundError("Merchant not found", merchant_id=merchant_id)
        return merchant

    async def active_deals_for_location(
        self,
        merchant_id: str,
        location_id: str,
        *,
        now: datetime | None = None,
    ) -> list[Deal]:
        """Active deals of the merchant that are offered at the location right now."""

        reference = now or utcnow()
        stmt = (
            select(Deal)
            .where(Deal.merchant_id == merchant_id, Deal.active.is_(True))
            .order_by(Deal.created_at, Deal.id)
        )
        deals = await self._scalars(stmt, "active_deals_for_location")
        return [deal for deal in deals if deal.covers_location(location_id) and deal.is_active_at(reference)]

    async def list_active_deals(self, *, now: datetime | None = None) -> list[Deal]:
        reference = now or utcnow()
        stmt = select(Deal).where(Deal.active.is_(True)).order_by(Deal.created_at, Deal.id)
        deals = await self._scalars(stmt, "list_active_deals")
        return [deal for deal in deals if deal.is_active_at(reference)]

    async def list_active_merchants(self) -> list[Merchant]:
        stmt = select(Merchant).where(Merchant.active.is_(True)).order_by(Merchant.name, Merchant.id)
        return await self._scalars(stmt, "list_active_merchants")

    async def list_active_locations(self, merchant_ids: Sequence[str] | None = None) -> list[Location]:
        stmt = select(Location).where(Location.active.is_(True))
        if merchant_ids is not None:
            if not merchant_ids:
                return []
            stmt = stmt.where(Location.merchant_id.in_(list(merchant_ids)))
        stmt = stmt.order_by(Location.merchant_id, Location.id)
        return await self._scalars(stmt, "list_active_locations")

    async def locations_for_merchant(self, merchant_id: str) -> list[Location]:
        stmt = select(Location).where(Location.merchant_id == merchant_id).order_by(Location.id)
        return await self._scalars(stmt, "locations_for_merchant")

    async def fetch_deals(self, deal_ids: Iterable[str]) -> dict[str, Deal]:
        return await self._fetch_by_ids(Deal, deal_ids)

    async def fetch_merchants(self, merchant_ids: Iterable[str]) -> dict[str, Merchant]:
        return await self._fetch_by_ids(Merchant, merchant_ids)

    async def fetch_locations(self, location_ids: Iterable[str]) -> dict[str, Location]:
        return await self._fetch_by_ids(Location, location_ids)

    async def register_deal(
        self,
        *,
        merchant_id: str,
        title: str,
        location_ids: Sequence[str],
        description: str | None = None,
        terms: str | None = None,
        image_url: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        active: bool = True,
    ) -> Deal:
        """Create a deal after checking its locations belong to the merchant."""

        await self.get_merchant(merchant_id)
        owned = {location.id for location in await self.locations_for_merchant(merchant_id)}
        foreign = [location_id for location_id in location_ids if location_id not in owned]
        if foreign:
            raise ValueError(f"Locations {foreign} do not belong to merchant {merchant_id}")

        deal = Deal(
            merchant_id=merchant_id,
            title=title,
            description=description,
            terms=terms,
            image_url=image_url,
            location_ids=list(location_ids),
            start_date=start_date,
            end_date=end_date,
            active=active,
        )
        self._db.add(deal)
        try:
            await self._db.flush()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError("register_deal", cause=exc, merchant_id=merchant_id) from exc
        logger.info("Registered deal", deal_id=deal.id, merchant_id=merchant_id, locations=len(location_ids))
        return deal

    async def _fetch_by_ids(self, model: type[ModelT], ids: Iterable[str]) -> dict[str, ModelT]:
        found: dict[str, ModelT] = {}
        for chunk in chunked(ids, self._chunk_size):
            stmt = select(model).where(model.id.in_(chunk))
            for row in await self._scalars(stmt, f"fetch_{model.__tablename__}"):
                found[row.id] = row
        return found

    async def _get(self, model: type[ModelT], key: str, operation: str) -> ModelT | None:
        try:
            return await self._db.get(model, key)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(operation, cause=exc, id=key) from exc

    async def _scalars(self, stmt, operation: str) -> list:
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(operation, cause=exc) from exc
        return list(result.scalars().all())


__all__ = ["DealCatalog", "chunked"]
