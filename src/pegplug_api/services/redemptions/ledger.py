"""Lifecycle of redemption records (pending → completed | expired)."""

from __future__ import annotations

import asyncio
import weakref
from datetime import datetime, timedelta
from typing import Sequence

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.core.settings import Settings, get_settings
from pegplug_api.domain.errors import (
    AlreadyRedeemedError,
    InvalidTransitionError,
    RedemptionNotFoundError,
    StoreUnavailableError,
)
from pegplug_api.domain.regions import Coordinate
from pegplug_api.models.deal import Deal
from pegplug_api.models.redemption import (
    Redemption,
    RedemptionExpiryReasonEnum,
    RedemptionStatusEnum,
)
from pegplug_api.models.user import User
from pegplug_api.observability.rewards import get_rewards_store
from pegplug_api.observability.tracing import get_tracer
from pegplug_api.services.notifications.scheduler import NotificationScheduler


_PENDING = RedemptionStatusEnum.PENDING.value
_COMPLETED = RedemptionStatusEnum.COMPLETED.value
_EXPIRED = RedemptionStatusEnum.EXPIRED.value

_tracer = get_tracer(__name__)

_KEY_LOCKS: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = weakref.WeakValueDictionary()


def _key_lock(user_id: str, deal_id: str) -> asyncio.Lock:
    """Per-(user, deal) lock; unrelated keys never contend."""

    key = (user_id, deal_id)
    lock = _KEY_LOCKS.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _KEY_LOCKS[key] = lock
    return lock


class RedemptionLedger:
    """Creates and transitions redemptions, healing lapsed rows on read.

    Every write commits before the per-key lock is released so that the next
    waiter observes it from its own session.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        scheduler: NotificationScheduler | None = None,
        *,
        config: Settings | None = None,
    ) -> None:
        self._db = db_session
        self._settings = config or get_settings()
        self._scheduler = scheduler
        self._store = get_rewards_store()

    @property
    def validity(self) -> timedelta:
        return timedelta(minutes=self._settings.redemption_validity_minutes)

    async def create_pending_redemption(
        self,
        user_id: str,
        deal: Deal,
        merchant_id: str,
        location_id: str,
        coordinate: Coordinate | None = None,
        *,
        now: datetime | None = None,
        device_id: str = "",
    ) -> Redemption:
        """Return the valid pending redemption for (user, deal), creating it if needed.

        Raises `AlreadyRedeemedError` when the user already completed the deal.
        """

        reference = now or utcnow()
        point = coordinate or Coordinate.origin()
        with _tracer.start_as_current_span("redemption.create") as span:
            span.set_attribute("pegplug.user_id", user_id)
            span.set_attribute("pegplug.deal_id", deal.id)
            async with _key_lock(user_id, deal.id):
                redemption, created = await self._create_locked(
                    user_id,
                    deal,
                    merchant_id,
                    location_id,
                    point,
                    reference,
                    device_id,
                )
            span.set_attribute("pegplug.created", created)

        if created:
            await self._schedule_reminder(user_id, redemption, deal, reference)
        return redemption

    async def _create_locked(
        self,
        user_id: str,
        deal: Deal,
        merchant_id: str,
        location_id: str,
        point: Coordinate,
        reference: datetime,
        device_id: str,
    ) -> tuple[Redemption, bool]:
        deal_id = deal.id
        existing = await self._find_existing(user_id, deal_id, reference)
        if existing is not None:
            return existing, False

        redemption = Redemption(
            user_id=user_id,
            deal_id=deal_id,
            merchant_id=merchant_id,
            location_id=location_id,
            timestamp=reference,
            validity_period=reference + self.validity,
            status=_PENDING,
            device_id=device_id or "",
            redemption_latitude=point.latitude,
            redemption_longitude=point.longitude,
            notification_sent=False,
        )
        try:
            async with self._db.begin_nested():
                self._db.add(redemption)
        except IntegrityError:
            logger.warning("Detected race when creating redemption", user_id=user_id, deal_id=deal_id)
            winner = await self._find_existing(user_id, deal_id, reference)
            if winner is None:
                raise StoreUnavailableError("create_pending_redemption", user_id=user_id, deal_id=deal_id)
            return winner, False
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(
                "create_pending_redemption", cause=exc, user_id=user_id, deal_id=deal_id
            ) from exc

        await self._commit("create_pending_redemption", user_id=user_id, deal_id=deal_id)
        self._store.record_redemption_event("created")
        logger.info(
            "Created pending redemption",
            redemption_id=redemption.id,
            user_id=user_id,
            deal_id=deal_id,
            location_id=location_id,
            validity_period=redemption.validity_period.isoformat(),
        )
        return redemption, True

    async def _find_existing(self, user_id: str, deal_id: str, reference: datetime) -> Redemption | None:
        """Valid pending row for the pair; raises when the deal was completed."""

        rows = await self._rows(
            select(Redemption)
            .where(
                Redemption.user_id == user_id,
                Redemption.deal_id == deal_id,
                Redemption.status.in_([_PENDING, _COMPLETED]),
            )
            .execution_options(populate_existing=True),
            "find_redemption",
        )
        for row in rows:
            if row.status == _COMPLETED:
                self._store.record_redemption_event("already_redeemed")
                raise AlreadyRedeemedError(user_id=user_id, deal_id=deal_id, redemption_id=row.id)
        for row in rows:
            if row.is_valid_at(reference):
                self._store.record_redemption_event("reused")
                return row
            await self._transition(row, _EXPIRED, reference, RedemptionExpiryReasonEnum.ELAPSED)
            await self._commit("expire_redemption", redemption_id=row.id)
            self._store.record_redemption_event("lazy_expired")
        return None

    async def complete_redemption(
        self,
        redemption_id: str,
        *,
        now: datetime | None = None,
        user_id: str | None = None,
    ) -> Redemption:
        reference = now or utcnow()
        redemption = await self._load(redemption_id, user_id=user_id)
        async with _key_lock(redemption.user_id, redemption.deal_id):
            redemption = await self._load(redemption_id, user_id=user_id)
            if redemption.is_lapsed_at(reference):
                await self._expire_locked(redemption, reference, RedemptionExpiryReasonEnum.ELAPSED)
            if not redemption.is_valid_at(reference):
                raise InvalidTransitionError(
                    redemption_id=redemption_id,
                    status=redemption.status,
                    target=_COMPLETED,
                )
            if not await self._transition(redemption, _COMPLETED, reference):
                raise InvalidTransitionError(
                    redemption_id=redemption_id,
                    status=redemption.status,
                    target=_COMPLETED,
                )
            await self._commit("complete_redemption", redemption_id=redemption_id)

        self._store.record_redemption_event("completed")
        logger.info(
            "Completed redemption",
            redemption_id=redemption_id,
            user_id=redemption.user_id,
            deal_id=redemption.deal_id,
        )
        return redemption

    async def expire_redemption(
        self,
        redemption_id: str,
        *,
        now: datetime | None = None,
        user_id: str | None = None,
    ) -> Redemption:
        return await self._expire(redemption_id, now or utcnow(), RedemptionExpiryReasonEnum.ELAPSED, user_id)

    async def cancel_redemption(
        self,
        redemption_id: str,
        *,
        now: datetime | None = None,
        user_id: str | None = None,
    ) -> Redemption:
        """User-initiated expiry of a pending redemption."""

        return await self._expire(redemption_id, now or utcnow(), RedemptionExpiryReasonEnum.CANCELLED, user_id)

    async def _expire(
        self,
        redemption_id: str,
        reference: datetime,
        reason: RedemptionExpiryReasonEnum,
        user_id: str | None,
    ) -> Redemption:
        redemption = await self._load(redemption_id, user_id=user_id)
        async with _key_lock(redemption.user_id, redemption.deal_id):
            redemption = await self._load(redemption_id, user_id=user_id)
            if redemption.status == _EXPIRED:
                return redemption
            if redemption.status == _COMPLETED:
                raise InvalidTransitionError(
                    redemption_id=redemption_id,
                    status=redemption.status,
                    target=_EXPIRED,
                )
            await self._expire_locked(redemption, reference, reason)
        return redemption

    async def _expire_locked(
        self,
        redemption: Redemption,
        reference: datetime,
        reason: RedemptionExpiryReasonEnum,
    ) -> None:
        if await self._transition(redemption, _EXPIRED, reference, reason):
            await self._commit("expire_redemption", redemption_id=redemption.id)
            event = "cancelled" if reason is RedemptionExpiryReasonEnum.CANCELLED else "expired"
            self._store.record_redemption_event(event)
            logger.info(
                "Expired redemption",
                redemption_id=redemption.id,
                user_id=redemption.user_id,
                reason=reason.value,
            )

    async def get_redemption(
        self,
        redemption_id: str,
        *,
        now: datetime | None = None,
        user_id: str | None = None,
    ) -> Redemption:
        redemption = await self._load(redemption_id, user_id=user_id)
        await self._heal([redemption], now or utcnow())
        return redemption

    async def find_pending(self, user_id: str, deal_id: str, *, now: datetime | None = None) -> Redemption | None:
        """The still-valid pending redemption for (user, deal), if any."""

        reference = now or utcnow()
        rows = await self._rows(
            select(Redemption).where(
                Redemption.user_id == user_id,
                Redemption.deal_id == deal_id,
                Redemption.status == _PENDING,
            )
            .execution_options(populate_existing=True),
            "find_pending",
        )
        await self._heal(rows, reference)
        return next((row for row in rows if row.is_valid_at(reference)), None)

    async def list_active_redemptions(self, user_id: str, *, now: datetime | None = None) -> list[Redemption]:
        reference = now or utcnow()
        rows = await self._rows(
            select(Redemption)
            .where(Redemption.user_id == user_id, Redemption.status == _PENDING)
            .order_by(Redemption.timestamp.desc(), Redemption.id)
            .execution_options(populate_existing=True),
            "list_active_redemptions",
        )
        await self._heal(rows, reference)
        return [row for row in rows if row.is_valid_at(reference)]

    async def list_redemptions(
        self,
        user_id: str,
        *,
        now: datetime | None = None,
        statuses: Sequence[RedemptionStatusEnum] | None = None,
    ) -> list[Redemption]:
        """All of the user's redemptions, newest first, with lapsed rows expired."""

        reference = now or utcnow()
        rows = await self._rows(
            select(Redemption)
            .where(Redemption.user_id == user_id)
            .order_by(Redemption.timestamp.desc(), Redemption.id)
            .execution_options(populate_existing=True),
            "list_redemptions",
        )
        await self._heal(rows, reference)
        if statuses:
            wanted = {status.value for status in statuses}
            rows = [row for row in rows if row.status in wanted]
        return rows

    async def _heal(self, rows: Sequence[Redemption], reference: datetime) -> None:
        lapsed = [row for row in rows if row.is_lapsed_at(reference)]
        if not lapsed:
            return
        healed = 0
        for row in lapsed:
            if await self._transition(row, _EXPIRED, reference, RedemptionExpiryReasonEnum.ELAPSED):
                healed += 1
        await self._commit("expire_lapsed_redemptions", count=len(lapsed))
        for _ in range(healed):
            self._store.record_redemption_event("lazy_expired")
        logger.debug("Expired lapsed redemptions", count=healed)

    async def _transition(
        self,
        redemption: Redemption,
        target: str,
        reference: datetime,
        reason: RedemptionExpiryReasonEnum | None = None,
    ) -> bool:
        """Conditional pending → `target` write; False when another writer got there first."""

        values: dict[str, object] = {"status": target}
        if target == _COMPLETED:
            values["completed_at"] = reference
        else:
            values["expired_at"] = reference
            values["expiry_reason"] = (reason or RedemptionExpiryReasonEnum.ELAPSED).value

        stmt = (
            update(Redemption)
            .where(Redemption.id == redemption.id, Redemption.status == _PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._db.execute(stmt)
            await self._db.refresh(redemption)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError("transition_redemption", cause=exc, redemption_id=redemption.id) from exc
        return result.rowcount == 1

    async def _load(self, redemption_id: str, *, user_id: str | None = None) -> Redemption:
        rows = await self._rows(
            select(Redemption).where(Redemption.id == redemption_id).execution_options(populate_existing=True),
            "get_redemption",
        )
        if not rows or (user_id is not None and rows[0].user_id != user_id):
            raise RedemptionNotFoundError(redemption_id=redemption_id)
        return rows[0]

    async def _rows(self, stmt, operation: str) -> list[Redemption]:
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(operation, cause=exc) from exc
        return list(result.scalars().all())

    async def _commit(self, operation: str, **context: object) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(operation, cause=exc, **context) from exc

    async def _schedule_reminder(
        self,
        user_id: str,
        redemption: Redemption,
        deal: Deal,
        reference: datetime,
    ) -> None:
        if self._scheduler is None:
            return
        redemption_id = redemption.id
        try:
            user = await self._db.get(User, user_id)
            if user is None:
                return
            await self._scheduler.schedule_expiry_reminder(
                user,
                redemption,
                deal_title=deal.title,
                now=reference,
            )
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            await self._db.refresh(redemption)
            logger.warning("Failed to schedule expiry reminder", redemption_id=redemption_id, error=str(exc))


__all__ = ["RedemptionLedger"]
