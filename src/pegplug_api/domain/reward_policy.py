"""Pure spin-allotment and win-odds rules over a user snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pegplug_api.core.clock import same_utc_day
from pegplug_api.core.settings import Settings, get_settings
from pegplug_api.models.user import MembershipTierEnum, User


@dataclass(frozen=True)
class RewardRules:
    """Tier-dependent constants driving spins and odds."""

    basic_daily_spins: int = 1
    premium_daily_spins: int = 3
    basic_win_chance: float = 0.30
    premium_win_chance: float = 0.40
    reel_match_probability: float = 0.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RewardRules":
        resolved = settings or get_settings()
        return cls(
            basic_daily_spins=resolved.basic_daily_spins,
            premium_daily_spins=resolved.premium_daily_spins,
            basic_win_chance=resolved.basic_win_chance,
            premium_win_chance=resolved.premium_win_chance,
            reel_match_probability=resolved.reel_match_probability,
        )


DEFAULT_RULES = RewardRules()


def _coerce_tier(tier: MembershipTierEnum | str) -> MembershipTierEnum:
    if isinstance(tier, MembershipTierEnum):
        return tier
    try:
        return MembershipTierEnum(str(tier))
    except ValueError:
        return MembershipTierEnum.BASIC


def daily_spin_allotment(tier: MembershipTierEnum | str, rules: RewardRules = DEFAULT_RULES) -> int:
    if _coerce_tier(tier) is MembershipTierEnum.PREMIUM:
        return rules.premium_daily_spins
    return rules.basic_daily_spins


def needs_daily_refresh(user: User, now: datetime) -> bool:
    """True when the user's last spin date is missing or on an earlier UTC day."""

    if user.last_spin_date is None:
        return True
    return not same_utc_day(user.last_spin_date, now)


def refresh_spins(user: User, now: datetime, rules: RewardRules = DEFAULT_RULES) -> User:
    """Reset the spin balance to the tier allotment on the first touch of a new day.

    Balance and date are assigned together so they are flushed in one UPDATE.
    """

    if needs_daily_refresh(user, now):
        user.available_spins = daily_spin_allotment(user.membership_tier, rules)
        user.last_spin_date = now
    return user


def win_probability(tier: MembershipTierEnum | str, rules: RewardRules = DEFAULT_RULES) -> float:
    """Base tier odds, optionally folded with an independent reel-match chance."""

    if _coerce_tier(tier) is MembershipTierEnum.PREMIUM:
        base = rules.premium_win_chance
    else:
        base = rules.basic_win_chance
    match = rules.reel_match_probability
    return base + (1.0 - base) * match


def can_spin(user: User) -> bool:
    return (user.available_spins or 0) > 0


__all__ = [
    "DEFAULT_RULES",
    "RewardRules",
    "can_spin",
    "daily_spin_allotment",
    "needs_daily_refresh",
    "refresh_spins",
    "win_probability",
]
