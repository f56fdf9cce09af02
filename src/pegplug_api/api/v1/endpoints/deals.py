"""Home feed and in-person deal redemption."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.api.dependencies.services import get_notification_backend, get_session_factory
from pegplug_api.api.dependencies.session import require_member_session
from pegplug_api.api.errors import http_error
from pegplug_api.core.clock import utcnow
from pegplug_api.db.session import get_session
from pegplug_api.domain.errors import RewardError
from pegplug_api.models.user import User
from pegplug_api.schemas.rewards import (
    DealResponse,
    HomeFeedResponse,
    LocationResponse,
    MerchantResponse,
    RedeemRequest,
    RedemptionResponse,
)
from pegplug_api.services.feed import SessionFactory, load_home_feed
from pegplug_api.services.notifications.backend import NotificationBackend
from pegplug_api.services.notifications.scheduler import NotificationScheduler
from pegplug_api.services.redemptions.claims import InPersonRedemptionService
from pegplug_api.services.redemptions.ledger import RedemptionLedger


router = APIRouter(prefix="/deals", tags=["Deals"])


@router.get("/feed", response_model=HomeFeedResponse)
async def get_home_feed(
    current_user: User = Depends(require_member_session),
    session_factory: SessionFactory = Depends(get_session_factory),
) -> HomeFeedResponse:
    now = utcnow()
    try:
        feed = await load_home_feed(session_factory, current_user.id, now=now)
    except RewardError as exc:
        raise http_error(exc) from exc
    return HomeFeedResponse(
        deals=[DealResponse.from_record(deal) for deal in feed.deals],
        merchants=[MerchantResponse.from_record(merchant) for merchant in feed.merchants.values()],
        locations=[LocationResponse.from_record(location) for location in feed.locations.values()],
        activeRedemptions={
            deal_id: RedemptionResponse.from_record(redemption, now)
            for deal_id, redemption in feed.active_redemptions.items()
        },
    )


@router.post("/{deal_id}/redeem", response_model=RedemptionResponse, status_code=status.HTTP_201_CREATED)
async def redeem_deal(
    deal_id: str,
    payload: RedeemRequest,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
    backend: NotificationBackend | None = Depends(get_notification_backend),
) -> RedemptionResponse:
    """Stage a redemption when the member is within the merchant's geofence radius."""

    now = utcnow()
    ledger = RedemptionLedger(db, NotificationScheduler(db, backend))
    service = InPersonRedemptionService(db, ledger)
    try:
        redemption = await service.redeem_deal(
            current_user.id,
            deal_id,
            payload.coordinate.to_coordinate(),
            now=now,
            device_id=payload.deviceId,
        )
    except RewardError as exc:
        raise http_error(exc) from exc
    return RedemptionResponse.from_record(redemption, now)
