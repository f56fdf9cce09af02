from fastapi import APIRouter

from .endpoints import (
    deals,
    geofence,
    health,
    members,
    observability,
    redemptions,
    spins,
)

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(members.router)
router.include_router(spins.router)
router.include_router(redemptions.router)
router.include_router(deals.router)
router.include_router(geofence.router)
router.include_router(observability.router)
