"""Membership state and spin orchestration."""

from .membership import MembershipService
from .spins import SpinResult, SpinService

__all__ = ["MembershipService", "SpinResult", "SpinService"]
