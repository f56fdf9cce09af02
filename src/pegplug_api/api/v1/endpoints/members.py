"""Member profile, tier upgrade and notification preferences."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.api.dependencies.services import get_notification_backend
from pegplug_api.api.dependencies.session import require_member_session
from pegplug_api.api.errors import http_error
from pegplug_api.db.session import get_session
from pegplug_api.domain.errors import RewardError
from pegplug_api.models.user import User
from pegplug_api.services.notifications.backend import NotificationBackend
from pegplug_api.services.notifications.scheduler import NotificationScheduler
from pegplug_api.services.rewards.membership import MembershipService
from pegplug_api.schemas.rewards import MemberResponse, PreferencesUpdateRequest


router = APIRouter(prefix="/members", tags=["Members"])


@router.get("/me", response_model=MemberResponse)
async def get_current_member(
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> MemberResponse:
    service = MembershipService(db)
    return MemberResponse.from_record(current_user, service.rules)


@router.post("/me/upgrade", response_model=MemberResponse)
async def upgrade_current_member(
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> MemberResponse:
    """Switch the member to premium and top spins up to the premium allotment."""

    service = MembershipService(db)
    try:
        user = await service.upgrade_to_premium(current_user.id)
        await db.commit()
    except RewardError as exc:
        raise http_error(exc) from exc
    return MemberResponse.from_record(user, service.rules)


@router.patch("/me/preferences", response_model=MemberResponse)
async def update_member_preferences(
    payload: PreferencesUpdateRequest,
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
) -> MemberResponse:
    service = MembershipService(db)
    try:
        user = await service.update_preferences(
            current_user.id,
            notifications_enabled=payload.notificationsEnabled,
            push_token=payload.pushToken,
        )
        await db.commit()
    except RewardError as exc:
        raise http_error(exc) from exc
    return MemberResponse.from_record(user, service.rules)


@router.post("/me/reminders/daily-spins", status_code=status.HTTP_202_ACCEPTED)
async def schedule_daily_spins_reminder(
    current_user: User = Depends(require_member_session),
    db: AsyncSession = Depends(get_session),
    backend: NotificationBackend | None = Depends(get_notification_backend),
) -> dict[str, str | None]:
    scheduler = NotificationScheduler(db, backend)
    notification = await scheduler.schedule_daily_spins_reminder(current_user)
    await db.commit()
    return {
        "status": notification.status,
        "scheduledAt": notification.scheduled_at.isoformat() if notification.scheduled_at else None,
    }
