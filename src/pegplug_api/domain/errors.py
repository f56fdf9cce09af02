"""Error taxonomy for the reward and redemption domain.

Domain errors are expected outcomes (not enough spins, deal already redeemed,
...) that callers map to short user-facing messages. `StoreUnavailableError`
wraps infrastructure failures with the operation name and the entity ids
involved; nothing in the core retries on it.
"""

from __future__ import annotations

from typing import Any


class RewardError(Exception):
    """Base class for reward-domain failures."""

    code = "reward_error"
    message = "Reward operation failed"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.context = {key: value for key, value in context.items() if value is not None}
        super().__init__(message or self.message)

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self), **self.context}


class InsufficientSpinsError(RewardError):
    code = "insufficient_spins"
    message = "Not enough spins available"


class NoDealsAvailableError(RewardError):
    code = "no_deals_available"
    message = "No deals available at this location"


class AlreadyRedeemedError(RewardError):
    code = "already_redeemed"
    message = "You have already redeemed this deal"


class InvalidTransitionError(RewardError):
    code = "invalid_transition"
    message = "Redemption cannot move to the requested state"


class OutOfRangeError(RewardError):
    code = "out_of_range"
    message = "You must be at the merchant location to redeem this deal"


class NotFoundError(RewardError):
    code = "not_found"
    message = "Requested record was not found"


class UserNotFoundError(NotFoundError):
    code = "user_not_found"
    message = "User not found"


class DealNotFoundError(NotFoundError):
    code = "deal_not_found"
    message = "Deal not found"


class RedemptionNotFoundError(NotFoundError):
    code = "redemption_not_found"
    message = "Redemption not found"


class SpinNotFoundError(NotFoundError):
    code = "spin_not_found"
    message = "Spin not found"


class StoreUnavailableError(RewardError):
    code = "store_unavailable"
    message = "Reward store is unavailable"

    def __init__(self, operation: str, *, cause: BaseException | None = None, **context: Any) -> None:
        detail = f"{operation} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail, operation=operation, **context)


__all__ = [
    "AlreadyRedeemedError",
    "DealNotFoundError",
    "InsufficientSpinsError",
    "InvalidTransitionError",
    "NoDealsAvailableError",
    "NotFoundError",
    "OutOfRangeError",
    "RedemptionNotFoundError",
    "RewardError",
    "SpinNotFoundError",
    "StoreUnavailableError",
    "UserNotFoundError",
]
