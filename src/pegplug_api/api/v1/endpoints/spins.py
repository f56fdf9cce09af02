"""Slot spins at a merchant location and claiming winning spins."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.api.dependencies.services import get_notification_backend, get_spin_engine
from pegplug_api.api.dependencies.session import require_member_session
from pegplug_api.api.errors import http_error
from pegplug_api.core.clock import utcnow
from pegplug_api.db.session import get_session
from pegplug_api.domain.errors import RewardError
from pegplug_api.domain.spin_engine import SpinEngine
from pegplug_api.models.user import User
from pegplug_api.schemas.rewards import (
    ClaimRequest,
    DealResponse,
    RedemptionResponse,
    SpinRequest,
    SpinResponse,
)
from pegplug_api.services.notifications.backend import NotificationBackend
from pegplug_api.services.notifications.scheduler import NotificationScheduler
from pegplug_api.services.rewards.spins import SpinService


router = APIRouter(prefix="/spins", tags=["Spins"])


def _build_service(
    db: AsyncSession,
    engine: SpinEngine,
    backend: NotificationBackend | None,
) -> SpinService:
    return SpinService(db, engine=engine, scheduler=NotificationScheduler(db, backend))


@router.post("", response_model=SpinResponse, status_code=status.HTTP_201_CREATED)
async def spin(
    payload: SpinRequest,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
    engine: SpinEngine = Depends(get_spin_engine),
    backend: NotificationBackend | None = Depends(get_notification_backend),
) -> SpinResponse:
    service = _build_service(db, engine, backend)
    try:
        result = await service.spin(current_user.id, payload.merchantId, payload.locationId)
    except RewardError as exc:
        raise http_error(exc) from exc
    return SpinResponse(
        spinId=result.spin.id,
        won=result.won,
        deal=DealResponse.from_record(result.deal) if result.deal else None,
        availableSpins=result.user.available_spins or 0,
        winProbability=result.outcome.probability,
    )


@router.post("/{spin_id}/claim", response_model=RedemptionResponse, status_code=status.HTTP_201_CREATED)
async def claim_spin(
    spin_id: str,
    payload: ClaimRequest | None = None,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
    engine: SpinEngine = Depends(get_spin_engine),
    backend: NotificationBackend | None = Depends(get_notification_backend),
) -> RedemptionResponse:
    """Stage the pending redemption for a winning spin."""

    request = payload or ClaimRequest()
    service = _build_service(db, engine, backend)
    now = utcnow()
    try:
        redemption = await service.claim(
            current_user.id,
            spin_id,
            coordinate=request.coordinate.to_coordinate() if request.coordinate else None,
            now=now,
            device_id=request.deviceId,
        )
    except RewardError as exc:
        raise http_error(exc) from exc
    return RedemptionResponse.from_record(redemption, now)
