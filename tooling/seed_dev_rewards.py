"""Seed a demo merchant catalogue and QA members into the API database."""

from __future__ import annotations

import asyncio
import os
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pegplug_api.core.clock import utcnow
from pegplug_api.core.settings import settings
from pegplug_api.domain.reward_policy import RewardRules, daily_spin_allotment
from pegplug_api.models import Deal, Location, MembershipTierEnum, Merchant, User


class SeedLocation(TypedDict):
    name: str
    address: str
    latitude: float
    longitude: float


class SeedMerchant(TypedDict):
    name: str
    merchant_type: str
    geofence_radius: float
    locations: list[SeedLocation]
    deals: list[str]


DEV_MERCHANTS: list[SeedMerchant] = [
    {
        "name": "Bean There",
        "merchant_type": "cafe",
        "geofence_radius": 0.5,
        "locations": [
            {"name": "Bean There Tribeca", "address": "120 Hudson St", "latitude": 40.7197, "longitude": -74.0089},
            {"name": "Bean There Midtown", "address": "55 W 45th St", "latitude": 40.7558, "longitude": -73.9811},
        ],
        "deals": ["Free Drip Coffee", "Half-Price Croissant"],
    },
    {
        "name": "Crust & Co",
        "merchant_type": "pizza",
        "geofence_radius": 0.25,
        "locations": [
            {"name": "Crust & Co Williamsburg", "address": "200 Bedford Ave", "latitude": 40.7170, "longitude": -73.9570},
        ],
        "deals": ["Free Garlic Knots"],
    },
]

DEV_MEMBERS = [
    (os.getenv("DEV_MEMBER_BASIC_ID", "qa-basic"), "basic@pegplug.dev", MembershipTierEnum.BASIC),
    (os.getenv("DEV_MEMBER_PREMIUM_ID", "qa-premium"), "premium@pegplug.dev", MembershipTierEnum.PREMIUM),
]


async def seed_merchants(session: AsyncSession) -> None:
    for entry in DEV_MERCHANTS:
        existing = await session.execute(select(Merchant).where(Merchant.name == entry["name"]))
        if existing.scalar_one_or_none() is not None:
            continue

        merchant = Merchant(
            name=entry["name"],
            merchant_type=entry["merchant_type"],
            geofence_radius=entry["geofence_radius"],
            active=True,
        )
        session.add(merchant)
        await session.flush()

        locations = [Location(merchant_id=merchant.id, active=True, **location) for location in entry["locations"]]
        session.add_all(locations)
        await session.flush()

        session.add_all(
            Deal(
                merchant_id=merchant.id,
                title=title,
                location_ids=[location.id for location in locations],
                active=True,
            )
            for title in entry["deals"]
        )
    await session.commit()


async def seed_members(session: AsyncSession) -> None:
    rules = RewardRules.from_settings()
    now = utcnow()
    for user_id, email, tier in DEV_MEMBERS:
        record = await session.get(User, user_id)
        if record is None:
            record = User(id=user_id, email=email, display_name=email.split("@")[0])
            session.add(record)
        record.membership_tier = tier.value
        record.available_spins = daily_spin_allotment(tier, rules)
        record.last_spin_date = now
    await session.commit()


async def main() -> None:
    engine = create_async_engine(settings.database_url, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with session_factory() as session:
            await seed_merchants(session)
            await seed_members(session)
        print("Demo merchants and QA members ready")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
