"""Observability snapshot for reward pipelines."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pegplug_api.api.dependencies.security import require_service_api_key
from pegplug_api.observability.rewards import get_rewards_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/rewards",
    dependencies=[Depends(require_service_api_key)],
    summary="Reward pipeline observability snapshot",
)
async def get_rewards_snapshot() -> dict[str, object]:
    """Aggregated spin, redemption, geofence and notification counters."""
    store = get_rewards_store()
    return store.snapshot().as_dict()
