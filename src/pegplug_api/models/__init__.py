"""SQLAlchemy models package."""

from .deal import Deal  # noqa: F401
from .merchant import DEFAULT_GEOFENCE_RADIUS_MILES, Location, Merchant  # noqa: F401
from .notification import (  # noqa: F401
    Notification,
    NotificationCategoryEnum,
    NotificationStatusEnum,
)
from .redemption import (  # noqa: F401
    Redemption,
    RedemptionExpiryReasonEnum,
    RedemptionStatusEnum,
)
from .spin import Spin  # noqa: F401
from .user import MembershipTierEnum, User, UserRoleEnum  # noqa: F401

__all__ = [
    "DEFAULT_GEOFENCE_RADIUS_MILES",
    "Deal",
    "Location",
    "MembershipTierEnum",
    "Merchant",
    "Notification",
    "NotificationCategoryEnum",
    "NotificationStatusEnum",
    "Redemption",
    "RedemptionExpiryReasonEnum",
    "RedemptionStatusEnum",
    "Spin",
    "User",
    "UserRoleEnum",
]
