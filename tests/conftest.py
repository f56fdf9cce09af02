import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

from pegplug_api.api.dependencies.services import (  # noqa: E402
    get_geofence,
    get_notification_backend,
    get_session_factory,
)
from pegplug_api.app import create_app  # noqa: E402
from pegplug_api.db.base import Base  # noqa: E402
from pegplug_api.db.session import get_session  # noqa: E402
from pegplug_api.models import Deal, Location, Merchant  # noqa: E402
from pegplug_api.observability.rewards import get_rewards_store  # noqa: E402
from pegplug_api.services.geofence.service import InMemoryGeofenceService  # noqa: E402
from pegplug_api.services.notifications.backend import InMemoryNotificationBackend  # noqa: E402


T0 = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


@dataclass
class SeededMerchant:
    merchant: Merchant
    locations: list[Location]
    deals: list[Deal]

    @property
    def location(self) -> Location:
        return self.locations[0]


async def seed_merchant(
    session: AsyncSession,
    *,
    name: str = "Bean There",
    deal_titles: Sequence[str] = ("Free Coffee",),
    coordinates: Sequence[tuple[float, float]] = ((40.7128, -74.0060),),
    geofence_radius: float = 0.5,
) -> SeededMerchant:
    merchant = Merchant(name=name, active=True, geofence_radius=geofence_radius)
    session.add(merchant)
    await session.flush()

    locations = [
        Location(
            merchant_id=merchant.id,
            name=f"{name} #{index}",
            latitude=latitude,
            longitude=longitude,
            active=True,
        )
        for index, (latitude, longitude) in enumerate(coordinates, start=1)
    ]
    session.add_all(locations)
    await session.flush()

    deals = [
        Deal(
            merchant_id=merchant.id,
            title=title,
            location_ids=[location.id for location in locations],
            active=True,
        )
        for title in deal_titles
    ]
    session.add_all(deals)
    await session.commit()
    return SeededMerchant(merchant=merchant, locations=locations, deals=deals)


@pytest.fixture(autouse=True)
def reset_rewards_store():
    get_rewards_store().reset()
    yield
    get_rewards_store().reset()


@pytest.fixture
def push_backend() -> InMemoryNotificationBackend:
    return InMemoryNotificationBackend()


@pytest.fixture
def geofence() -> InMemoryGeofenceService:
    return InMemoryGeofenceService()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pegplug.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory, push_backend, geofence):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notification_backend] = lambda: push_backend
    app.dependency_overrides[get_geofence] = lambda: geofence

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
