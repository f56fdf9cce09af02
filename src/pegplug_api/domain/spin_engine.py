"""Probability-based slot outcome for one spin."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from pegplug_api.domain.errors import InsufficientSpinsError, NoDealsAvailableError
from pegplug_api.domain.reward_policy import DEFAULT_RULES, RewardRules, can_spin, win_probability
from pegplug_api.models.deal import Deal
from pegplug_api.models.user import User


@dataclass(frozen=True)
class SpinOutcome:
    won: bool
    deal: Deal | None = None
    probability: float = 0.0
    roll: float = 0.0


class SpinEngine:
    """Consumes one spin and decides the outcome; never creates redemptions."""

    def __init__(self, *, rng: random.Random | None = None, rules: RewardRules = DEFAULT_RULES) -> None:
        self._rng = rng or random.Random()
        self._rules = rules

    def spin(self, user: User, candidate_deals: Sequence[Deal], now: datetime) -> SpinOutcome:
        if not can_spin(user):
            raise InsufficientSpinsError(user_id=user.id)
        if not candidate_deals:
            raise NoDealsAvailableError(user_id=user.id)

        user.available_spins = (user.available_spins or 0) - 1
        user.last_spin_date = now

        probability = win_probability(user.membership_tier, self._rules)
        roll = self._rng.random()
        if roll >= probability:
            return SpinOutcome(won=False, probability=probability, roll=roll)

        deal = self._rng.choice(list(candidate_deals))
        return SpinOutcome(won=True, deal=deal, probability=probability, roll=roll)


__all__ = ["SpinEngine", "SpinOutcome"]
