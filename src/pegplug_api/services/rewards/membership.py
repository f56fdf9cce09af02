"""Membership tier and spin-balance state for app users."""

from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pegplug_api.core.clock import utcnow
from pegplug_api.domain.errors import InsufficientSpinsError, StoreUnavailableError, UserNotFoundError
from pegplug_api.domain.reward_policy import RewardRules, daily_spin_allotment, needs_daily_refresh, refresh_spins
from pegplug_api.models.user import MembershipTierEnum, User


class MembershipService:
    """Reads and mutates a user's tier, spin balance and preferences.

    Mutations are flushed, not committed; the caller owns the transaction.
    Spin balance and last spin date are written in one versioned UPDATE, so a
    concurrent writer surfaces as `StoreUnavailableError`.
    """

    def __init__(self, db_session: AsyncSession, *, rules: RewardRules | None = None) -> None:
        self._db = db_session
        self._rules = rules or RewardRules.from_settings()

    @property
    def rules(self) -> RewardRules:
        return self._rules

    async def get_user(self, user_id: str) -> User:
        try:
            user = await self._db.get(User, user_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("get_user", cause=exc, user_id=user_id) from exc
        if user is None:
            raise UserNotFoundError(user_id=user_id)
        return user

    async def ensure_user(
        self,
        user_id: str,
        *,
        email: str | None = None,
        display_name: str | None = None,
        now: datetime | None = None,
    ) -> User:
        """Fetch the user or create it on first authenticated touch.

        The insert runs in a savepoint; a concurrent first touch loses only
        the savepoint and reads the winner's row.
        """

        try:
            user = await self._db.get(User, user_id)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("ensure_user", cause=exc, user_id=user_id) from exc
        if user is not None:
            return user

        reference = now or utcnow()
        user = User(
            id=user_id,
            email=email or "",
            display_name=display_name or "",
            membership_tier=MembershipTierEnum.BASIC.value,
            available_spins=daily_spin_allotment(MembershipTierEnum.BASIC, self._rules),
            last_spin_date=reference,
        )
        try:
            async with self._db.begin_nested():
                self._db.add(user)
        except IntegrityError:
            logger.warning("Detected race when creating user", user_id=user_id)
            return await self.get_user(user_id)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StoreUnavailableError("ensure_user", cause=exc, user_id=user_id) from exc

        logger.info("Created user", user_id=user_id, tier=user.membership_tier)
        return user

    async def touch(self, user_id: str, *, now: datetime | None = None) -> User:
        """Ensure the user exists and apply the daily spin refresh."""

        reference = now or utcnow()
        user = await self.ensure_user(user_id, now=reference)
        if needs_daily_refresh(user, reference):
            refresh_spins(user, reference, self._rules)
            await self._persist("refresh_spins", user)
            logger.info(
                "Refreshed daily spins",
                user_id=user.id,
                tier=user.membership_tier,
                available_spins=user.available_spins,
            )
        return user

    async def upgrade_to_premium(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        user.membership_tier = MembershipTierEnum.PREMIUM.value
        user.available_spins = daily_spin_allotment(MembershipTierEnum.PREMIUM, self._rules)
        await self._persist("upgrade_to_premium", user)
        logger.info("Upgraded user to premium", user_id=user.id, available_spins=user.available_spins)
        return user

    async def use_spins(self, user_id: str, count: int = 1) -> User:
        if count < 1:
            raise ValueError("count must be positive")
        user = await self.get_user(user_id)
        available = user.available_spins or 0
        if available < count:
            raise InsufficientSpinsError(user_id=user_id, available=available, requested=count)
        user.available_spins = available - count
        await self._persist("use_spins", user)
        return user

    async def update_preferences(
        self,
        user_id: str,
        *,
        notifications_enabled: bool | None = None,
        push_token: str | None = None,
    ) -> User:
        user = await self.get_user(user_id)
        if notifications_enabled is not None:
            user.notifications_enabled = notifications_enabled
        if push_token is not None:
            user.push_token = push_token or None
        await self._persist("update_preferences", user)
        return user

    async def save(self, user: User, *, operation: str = "save_user") -> User:
        await self._persist(operation, user)
        return user

    async def _persist(self, operation: str, user: User) -> None:
        user_id = user.id
        try:
            await self._db.flush()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            logger.warning("User write failed", operation=operation, user_id=user_id, error=str(exc))
            raise StoreUnavailableError(operation, cause=exc, user_id=user_id) from exc


__all__ = ["MembershipService"]
