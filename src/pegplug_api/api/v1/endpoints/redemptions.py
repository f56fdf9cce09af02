"""Redemption history and lifecycle transitions."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.api.dependencies.security import require_service_api_key
from pegplug_api.api.dependencies.session import require_member_session
from pegplug_api.api.errors import http_error
from pegplug_api.core.clock import utcnow
from pegplug_api.db.session import get_session
from pegplug_api.domain.errors import RewardError
from pegplug_api.models.user import User
from pegplug_api.schemas.rewards import (
    DealResponse,
    LocationResponse,
    MerchantResponse,
    RedemptionDetailResponse,
    RedemptionHistoryResponse,
    RedemptionResponse,
)
from pegplug_api.services.redemptions.history import (
    RedemptionFilterEnum,
    RedemptionHistoryService,
    RedemptionWithDetails,
)
from pegplug_api.services.redemptions.ledger import RedemptionLedger


router = APIRouter(prefix="/redemptions", tags=["Redemptions"])


@router.get("", response_model=RedemptionHistoryResponse)
async def list_member_redemptions(
    status_filter: Optional[str] = Query(None, alias="status", description="active, completed or expired"),
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> RedemptionHistoryResponse:
    selected: RedemptionFilterEnum | None = None
    if status_filter:
        try:
            selected = RedemptionFilterEnum(status_filter.lower())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Unsupported redemption status: {status_filter}") from exc

    now = utcnow()
    service = RedemptionHistoryService(db, RedemptionLedger(db))
    try:
        history = await service.load_history(current_user.id, now=now)
    except RewardError as exc:
        raise http_error(exc) from exc
    return RedemptionHistoryResponse(
        items=[_serialize_detail(item, now) for item in history.filtered(selected)],
        counts=history.counts,
    )


@router.get("/active", response_model=List[RedemptionResponse])
async def list_active_redemptions(
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> List[RedemptionResponse]:
    now = utcnow()
    try:
        rows = await RedemptionLedger(db).list_active_redemptions(current_user.id, now=now)
    except RewardError as exc:
        raise http_error(exc) from exc
    return [RedemptionResponse.from_record(row, now) for row in rows]


@router.get("/{redemption_id}", response_model=RedemptionResponse)
async def get_redemption(
    redemption_id: str,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> RedemptionResponse:
    now = utcnow()
    try:
        redemption = await RedemptionLedger(db).get_redemption(redemption_id, now=now, user_id=current_user.id)
    except RewardError as exc:
        raise http_error(exc) from exc
    return RedemptionResponse.from_record(redemption, now)


@router.post("/{redemption_id}/cancel", response_model=RedemptionResponse)
async def cancel_redemption(
    redemption_id: str,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> RedemptionResponse:
    now = utcnow()
    try:
        redemption = await RedemptionLedger(db).cancel_redemption(redemption_id, now=now, user_id=current_user.id)
    except RewardError as exc:
        raise http_error(exc) from exc
    return RedemptionResponse.from_record(redemption, now)


@router.post(
    "/{redemption_id}/complete",
    response_model=RedemptionResponse,
    dependencies=[Depends(require_service_api_key)],
)
async def complete_redemption(
    redemption_id: str,
    db: AsyncSession = Depends(get_session),
) -> RedemptionResponse:
    """Merchant-side confirmation that the deal was honoured."""

    now = utcnow()
    try:
        redemption = await RedemptionLedger(db).complete_redemption(redemption_id, now=now)
    except RewardError as exc:
        raise http_error(exc) from exc
    return RedemptionResponse.from_record(redemption, now)


@router.post(
    "/{redemption_id}/expire",
    response_model=RedemptionResponse,
    dependencies=[Depends(require_service_api_key)],
)
async def expire_redemption(
    redemption_id: str,
    db: AsyncSession = Depends(get_session),
) -> RedemptionResponse:
    now = utcnow()
    try:
        redemption = await RedemptionLedger(db).expire_redemption(redemption_id, now=now)
    except RewardError as exc:
        raise http_error(exc) from exc
    return RedemptionResponse.from_record(redemption, now)


def _serialize_detail(item: RedemptionWithDetails, now) -> RedemptionDetailResponse:
    return RedemptionDetailResponse(
        redemption=RedemptionResponse.from_record(item.redemption, now),
        deal=DealResponse.from_record(item.deal) if item.deal else None,
        merchant=MerchantResponse.from_record(item.merchant) if item.merchant else None,
        location=LocationResponse.from_record(item.location) if item.location else None,
    )
