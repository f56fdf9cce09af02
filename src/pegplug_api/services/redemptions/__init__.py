"""Redemption ledger and the flows built on it."""

from .claims import InPersonRedemptionService, RangeCheck
from .history import (
    RedemptionFilterEnum,
    RedemptionHistory,
    RedemptionHistoryService,
    RedemptionWithDetails,
)
from .ledger import RedemptionLedger

__all__ = [
    "InPersonRedemptionService",
    "RangeCheck",
    "RedemptionFilterEnum",
    "RedemptionHistory",
    "RedemptionHistoryService",
    "RedemptionLedger",
    "RedemptionWithDetails",
]
