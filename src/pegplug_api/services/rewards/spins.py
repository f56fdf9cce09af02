"""Spin orchestration: refresh, roll, persist and claim."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.domain.errors import InvalidTransitionError, SpinNotFoundError, StoreUnavailableError
from pegplug_api.domain.regions import Coordinate
from pegplug_api.domain.spin_engine import SpinEngine, SpinOutcome
from pegplug_api.models.deal import Deal
from pegplug_api.models.redemption import Redemption
from pegplug_api.models.spin import Spin
from pegplug_api.models.user import User
from pegplug_api.observability.rewards import get_rewards_store
from pegplug_api.services.deals import DealCatalog
from pegplug_api.services.notifications.scheduler import NotificationScheduler
from pegplug_api.services.redemptions.ledger import RedemptionLedger

from .membership import MembershipService


@dataclass
class SpinResult:
    spin: Spin
    outcome: SpinOutcome
    user: User

    @property
    def won(self) -> bool:
        return self.outcome.won

    @property
    def deal(self) -> Deal | None:
        return self.outcome.deal


class SpinService:
    """Runs a spin for a user at a merchant location and records the result."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        membership: MembershipService | None = None,
        catalog: DealCatalog | None = None,
        engine: SpinEngine | None = None,
        scheduler: NotificationScheduler | None = None,
        ledger: RedemptionLedger | None = None,
    ) -> None:
        self._db = db_session
        self._membership = membership or MembershipService(db_session)
        self._catalog = catalog or DealCatalog(db_session)
        self._engine = engine or SpinEngine(rules=self._membership.rules)
        self._scheduler = scheduler
        self._ledger = ledger or RedemptionLedger(db_session, scheduler)

    async def spin(
        self,
        user_id: str,
        merchant_id: str,
        location_id: str,
        *,
        now: datetime | None = None,
    ) -> SpinResult:
        reference = now or utcnow()
        user = await self._membership.touch(user_id, now=reference)
        await self._commit("refresh_spins", user_id=user_id)

        deals = await self._catalog.active_deals_for_location(merchant_id, location_id, now=reference)
        outcome = self._engine.spin(user, deals, reference)

        spin = Spin(
            user_id=user_id,
            merchant_id=merchant_id,
            location_id=location_id,
            won=outcome.won,
            deal_id=outcome.deal.id if outcome.deal else None,
            created_at=reference,
        )
        self._db.add(spin)
        await self._membership.save(user, operation="spin")
        await self._commit("spin", user_id=user_id)

        get_rewards_store().record_spin(user.membership_tier, outcome.won)
        logger.info(
            "Spin recorded",
            user_id=user_id,
            merchant_id=merchant_id,
            location_id=location_id,
            won=outcome.won,
            deal_id=spin.deal_id,
            available_spins=user.available_spins,
        )

        if outcome.won and outcome.deal is not None and self._scheduler is not None:
            merchant = await self._catalog.get_merchant(merchant_id)
            await self._scheduler.send_spin_win(user, outcome.deal, merchant_name=merchant.name)
            await self._commit("spin_win_notification", user_id=user_id)

        return SpinResult(spin=spin, outcome=outcome, user=user)

    async def get_spin(self, spin_id: str, *, user_id: str | None = None) -> Spin:
        try:
            spin = await self._db.get(Spin, spin_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("get_spin", cause=exc, spin_id=spin_id) from exc
        if spin is None or (user_id is not None and spin.user_id != user_id):
            raise SpinNotFoundError(spin_id=spin_id)
        return spin

    async def list_spins(self, user_id: str, *, limit: int = 20) -> list[Spin]:
        stmt = select(Spin).where(Spin.user_id == user_id).order_by(Spin.created_at.desc()).limit(limit)
        try:
            result = await self._db.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("list_spins", cause=exc, user_id=user_id) from exc
        return list(result.scalars().all())

    async def claim(
        self,
        user_id: str,
        spin_id: str,
        *,
        coordinate: Coordinate | None = None,
        now: datetime | None = None,
        device_id: str = "",
    ) -> Redemption:
        """Turn a winning spin into a pending redemption (idempotent per deal)."""

        spin = await self.get_spin(spin_id, user_id=user_id)
        if not spin.won or spin.deal_id is None:
            raise InvalidTransitionError("Spin did not win a deal", spin_id=spin_id)

        deal = await self._catalog.get_deal(spin.deal_id)
        redemption = await self._ledger.create_pending_redemption(
            user_id,
            deal,
            spin.merchant_id,
            spin.location_id,
            coordinate,
            now=now,
            device_id=device_id,
        )
        if spin.redemption_id != redemption.id:
            spin.redemption_id = redemption.id
            await self._commit("claim_spin", spin_id=spin_id)
        return redemption

    async def _commit(self, operation: str, **context: object) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError(operation, cause=exc, **context) from exc


__all__ = ["SpinResult", "SpinService"]
