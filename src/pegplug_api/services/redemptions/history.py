"""Redemption history joined with deal, merchant and location details."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.models.deal import Deal
from pegplug_api.models.merchant import Location, Merchant
from pegplug_api.models.redemption import Redemption, RedemptionStatusEnum
from pegplug_api.services.deals import DealCatalog

from .ledger import RedemptionLedger


class RedemptionFilterEnum(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"

    @property
    def status(self) -> RedemptionStatusEnum:
        if self is RedemptionFilterEnum.ACTIVE:
            return RedemptionStatusEnum.PENDING
        return RedemptionStatusEnum(self.value)


@dataclass
class RedemptionWithDetails:
    redemption: Redemption
    deal: Deal | None
    merchant: Merchant | None
    location: Location | None

    def remaining_time(self, now: datetime) -> timedelta:
        remaining = self.redemption.remaining_time(now)
        return max(remaining, timedelta(0))


@dataclass
class RedemptionHistory:
    items: list[RedemptionWithDetails] = field(default_factory=list)

    def filtered(self, selected: RedemptionFilterEnum | None) -> list[RedemptionWithDetails]:
        if selected is None:
            return list(self.items)
        status = selected.status.value
        return [item for item in self.items if item.redemption.status == status]

    @property
    def counts(self) -> dict[str, int]:
        return {entry.value: len(self.filtered(entry)) for entry in RedemptionFilterEnum}


class RedemptionHistoryService:
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

    async def load_history(self, user_id: str, *, now: datetime | None = None) -> RedemptionHistory:
        """Newest-first history; referenced records are fetched in chunked batches."""

        reference = now or utcnow()
        redemptions = await self._ledger.list_redemptions(user_id, now=reference)
        if not redemptions:
            return RedemptionHistory()

        deals = await self._catalog.fetch_deals(row.deal_id for row in redemptions)
        merchants = await self._catalog.fetch_merchants(row.merchant_id for row in redemptions)
        locations = await self._catalog.fetch_locations(row.location_id for row in redemptions)

        return RedemptionHistory(
            items=[
                RedemptionWithDetails(
                    redemption=row,
                    deal=deals.get(row.deal_id),
                    merchant=merchants.get(row.merchant_id),
                    location=locations.get(row.location_id),
                )
                for row in redemptions
            ]
        )


__all__ = [
    "RedemptionFilterEnum",
    "RedemptionHistory",
    "RedemptionHistoryService",
    "RedemptionWithDetails",
]
