import random

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import seed_merchant
from pegplug_api.api.dependencies.services import get_spin_engine
from pegplug_api.core.settings import settings
from pegplug_api.domain.spin_engine import SpinEngine
from pegplug_api.models.notification import NotificationCategoryEnum


MEMBER = {"X-Session-User": "member-42"}
DOWNTOWN = {"latitude": 40.7128, "longitude": -74.0060}
MIDTOWN = {"latitude": 40.7549, "longitude": -73.9840}


class FixedRoll(random.Random):
    def __init__(self, roll: float) -> None:
        super().__init__(3)
        self._roll = roll

    def random(self) -> float:
        return self._roll


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health_endpoints(app_with_db):
    app, _ = app_with_db
    async with _client(app) as client:
        health = await client.get("/healthz")
        ready = await client.get("/api/v1/readyz")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert ready.status_code == 200
    assert ready.json()["components"]["database"]["status"] == "ready"


@pytest.mark.asyncio
async def test_member_session_is_required(app_with_db):
    app, _ = app_with_db
    async with _client(app) as client:
        missing = await client.get("/api/v1/members/me")
        invalid = await client.get("/api/v1/members/me", headers={"X-Session-User": "x" * 65})

    assert missing.status_code == 401
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_member_profile_upgrade_and_preferences(app_with_db):
    app, _ = app_with_db
    async with _client(app) as client:
        profile = await client.get("/api/v1/members/me", headers=MEMBER)
        upgraded = await client.post("/api/v1/members/me/upgrade", headers=MEMBER)
        preferences = await client.patch(
            "/api/v1/members/me/preferences",
            json={"notificationsEnabled": False},
            headers=MEMBER,
        )

    assert profile.status_code == 200
    body = profile.json()
    assert body["id"] == "member-42"
    assert body["membershipTier"] == "basic"
    assert body["availableSpins"] == 1
    assert body["dailyAllotment"] == 1

    assert upgraded.status_code == 200
    assert upgraded.json()["membershipTier"] == "premium"
    assert upgraded.json()["availableSpins"] == 3

    assert preferences.status_code == 200
    assert preferences.json()["notificationsEnabled"] is False


@pytest.mark.asyncio
async def test_spin_claim_and_complete_flow(app_with_db, push_backend):
    app, session_factory = app_with_db
    app.dependency_overrides[get_spin_engine] = lambda: SpinEngine(rng=FixedRoll(0.0))
    async with session_factory() as session:
        seeded = await seed_merchant(session)

    async with _client(app) as client:
        spun = await client.post(
            "/api/v1/spins",
            json={"merchantId": seeded.merchant.id, "locationId": seeded.location.id},
            headers=MEMBER,
        )
        assert spun.status_code == 201
        spin_body = spun.json()
        assert spin_body["won"] is True
        assert spin_body["deal"]["title"] == "Free Coffee"
        assert spin_body["availableSpins"] == 0
        assert spin_body["winProbability"] == pytest.approx(0.30)

        claimed = await client.post(f"/api/v1/spins/{spin_body['spinId']}/claim", headers=MEMBER)
        assert claimed.status_code == 201
        redemption = claimed.json()
        assert redemption["status"] == "pending"
        assert redemption["isValid"] is True
        assert 0 < redemption["remainingSeconds"] <= 120 * 60

        again = await client.post(
            "/api/v1/spins",
            json={"merchantId": seeded.merchant.id, "locationId": seeded.location.id},
            headers=MEMBER,
        )
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "insufficient_spins"

        active = await client.get("/api/v1/redemptions/active", headers=MEMBER)
        assert [row["id"] for row in active.json()] == [redemption["id"]]

        completed = await client.post(f"/api/v1/redemptions/{redemption['id']}/complete")
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"

        redeem_again = await client.post(
            f"/api/v1/deals/{seeded.deals[0].id}/redeem",
            json={"coordinate": DOWNTOWN},
            headers=MEMBER,
        )
        assert redeem_again.status_code == 409
        assert redeem_again.json()["detail"]["code"] == "already_redeemed"

        history = await client.get("/api/v1/redemptions", params={"status": "completed"}, headers=MEMBER)
        assert history.status_code == 200
        assert history.json()["counts"] == {"active": 0, "completed": 1, "expired": 0}
        assert history.json()["items"][0]["deal"]["title"] == "Free Coffee"

    assert len(push_backend.by_category(NotificationCategoryEnum.SPIN_WIN.value)) == 1
    assert len(push_backend.by_category(NotificationCategoryEnum.EXPIRY_REMINDER.value)) == 1


@pytest.mark.asyncio
async def test_redeem_out_of_range_and_cancel(app_with_db):
    app, session_factory = app_with_db
    async with session_factory() as session:
        seeded = await seed_merchant(session)

    async with _client(app) as client:
        far = await client.post(
            f"/api/v1/deals/{seeded.deals[0].id}/redeem",
            json={"coordinate": MIDTOWN},
            headers=MEMBER,
        )
        near = await client.post(
            f"/api/v1/deals/{seeded.deals[0].id}/redeem",
            json={"coordinate": DOWNTOWN, "deviceId": "android-7"},
            headers=MEMBER,
        )
        redemption_id = near.json()["id"]
        other_member = await client.get(
            f"/api/v1/redemptions/{redemption_id}",
            headers={"X-Session-User": "someone-else"},
        )
        cancelled = await client.post(f"/api/v1/redemptions/{redemption_id}/cancel", headers=MEMBER)
        cancelled_twice = await client.post(f"/api/v1/redemptions/{redemption_id}/cancel", headers=MEMBER)
        bad_filter = await client.get("/api/v1/redemptions", params={"status": "bogus"}, headers=MEMBER)

    assert far.status_code == 403
    assert far.json()["detail"]["code"] == "out_of_range"
    assert near.status_code == 201
    assert other_member.status_code == 404
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "expired"
    assert cancelled.json()["expiryReason"] == "cancelled"
    assert cancelled_twice.status_code == 200
    assert bad_filter.status_code == 400


@pytest.mark.asyncio
async def test_geofence_entry_exit_and_regions(app_with_db, geofence, push_backend):
    app, session_factory = app_with_db
    async with session_factory() as session:
        seeded = await seed_merchant(session, deal_titles=("Free Coffee", "Half-Price Bagel"))

    async with _client(app) as client:
        regions = await client.get("/api/v1/geofence/regions")
        entered = await client.post(
            "/api/v1/geofence/enter",
            json={"regionIdentifier": f"{seeded.merchant.id}_{seeded.location.id}", "coordinate": DOWNTOWN},
            headers=MEMBER,
        )
        feed = await client.get("/api/v1/deals/feed", headers=MEMBER)
        exited = await client.post(
            "/api/v1/geofence/exit",
            json={"merchantId": seeded.merchant.id, "locationId": seeded.location.id},
            headers=MEMBER,
        )
        invalid = await client.post("/api/v1/geofence/enter", json={}, headers=MEMBER)

    assert regions.status_code == 200
    assert [region["identifier"] for region in regions.json()] == [f"{seeded.merchant.id}_{seeded.location.id}"]

    assert entered.status_code == 200
    body = entered.json()
    assert body["dealCount"] == 2
    assert len(body["staged"]) == 2
    assert body["notified"] is True
    assert body["error"] is None
    assert len(push_backend.by_category(NotificationCategoryEnum.GEOFENCE_ENTRY.value)) == 1

    assert feed.status_code == 200
    assert set(feed.json()["activeRedemptions"]) == {deal.id for deal in seeded.deals}

    assert exited.status_code == 204
    assert geofence.inside("member-42") == set()
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_service_endpoints_require_api_key(app_with_db, monkeypatch):
    app, _ = app_with_db
    monkeypatch.setattr(settings, "session_api_key", "secret-key")

    async with _client(app) as client:
        denied = await client.get("/api/v1/observability/rewards")
        allowed = await client.get("/api/v1/observability/rewards", headers={"X-API-Key": "secret-key"})
        complete = await client.post("/api/v1/redemptions/missing/complete")
        missing = await client.post(
            "/api/v1/redemptions/missing/complete",
            headers={"X-API-Key": "secret-key"},
        )

    assert denied.status_code == 401
    assert allowed.status_code == 200
    assert set(allowed.json()) == {"spins", "redemptions", "geofence", "notifications"}
    assert complete.status_code == 401
    assert missing.status_code == 404
