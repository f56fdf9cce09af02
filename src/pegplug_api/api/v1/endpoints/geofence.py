"""Geofence entry/exit events reported by the device."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.api.dependencies.services import get_geofence, get_notification_backend
from pegplug_api.api.dependencies.session import require_member_session
from pegplug_api.api.errors import http_error
from pegplug_api.core.clock import utcnow
from pegplug_api.db.session import get_session
from pegplug_api.domain.errors import RewardError
from pegplug_api.models.user import User
from pegplug_api.schemas.rewards import (
    GeofenceEntryResponse,
    GeofenceEventRequest,
    GeofenceRegionResponse,
    RedemptionResponse,
)
from pegplug_api.services.geofence.service import GeofenceService
from pegplug_api.services.geofence.trigger import GeofenceRewardTrigger
from pegplug_api.services.notifications.backend import NotificationBackend
from pegplug_api.services.notifications.scheduler import NotificationScheduler


router = APIRouter(prefix="/geofence", tags=["Geofence"])


def _build_trigger(
    db: AsyncSession,
    geofence: GeofenceService,
    backend: NotificationBackend | None,
) -> GeofenceRewardTrigger:
    return GeofenceRewardTrigger(db, geofence=geofence, scheduler=NotificationScheduler(db, backend))


@router.post("/enter", response_model=GeofenceEntryResponse)
async def enter_region(
    payload: GeofenceEventRequest,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
    geofence: GeofenceService = Depends(get_geofence),
    backend: NotificationBackend | None = Depends(get_notification_backend),
) -> GeofenceEntryResponse:
    """Stage pending redemptions for every qualifying deal at the location."""

    trigger = _build_trigger(db, geofence, backend)
    coordinate = payload.coordinate.to_coordinate() if payload.coordinate else None
    now = utcnow()
    if payload.merchantId and payload.locationId:
        result = await trigger.on_location_entered(
            current_user.id,
            payload.merchantId,
            payload.locationId,
            coordinate,
            now=now,
        )
    else:
        result = await trigger.on_region_entered(current_user.id, payload.regionIdentifier or "", coordinate, now=now)

    return GeofenceEntryResponse(
        region=result.key.identifier if result.key else None,
        dealCount=len(result.deals),
        staged=[RedemptionResponse.from_record(row, now) for row in result.redemptions],
        skippedDealIds=result.skipped_deal_ids,
        notified=result.notification is not None,
        error=result.error,
    )


@router.post("/exit", status_code=status.HTTP_204_NO_CONTENT)
async def exit_region(
    payload: GeofenceEventRequest,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
    geofence: GeofenceService = Depends(get_geofence),
) -> None:
    trigger = GeofenceRewardTrigger(db, geofence=geofence)
    if payload.merchantId and payload.locationId:
        await trigger.on_location_exited(current_user.id, payload.merchantId, payload.locationId)
    else:
        await trigger.on_region_exited(current_user.id, payload.regionIdentifier or "")


@router.get("/regions", response_model=List[GeofenceRegionResponse])
async def list_regions(
    db: AsyncSession = Depends(get_session),
    geofence: GeofenceService = Depends(get_geofence),
) -> List[GeofenceRegionResponse]:
    """Regions the device should monitor."""

    try:
        regions = await GeofenceRewardTrigger(db, geofence=geofence).list_regions()
    except RewardError as exc:
        raise http_error(exc) from exc
    return [GeofenceRegionResponse.from_region(region) for region in regions]
