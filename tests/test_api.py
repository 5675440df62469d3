"""
Integration tests for the REST API endpoints.

Uses the in-memory SQLite database from ``conftest``; the DB session, the
notifier and the distance oracle dependencies are overridden.  Callers
authenticate with real bearer tokens.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from greenride.api.app import create_app
from greenride.api.dependencies import get_db, get_distance_oracle, get_notifier
from greenride.config import settings
from greenride.infrastructure.identity import JwtIdentityProvider


@pytest_asyncio.fixture
async def client(session_factory, users, notifier, oracle):
    app = create_app()

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_distance_oracle] = lambda: oracle

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth(users):
    provider = JwtIdentityProvider(settings.jwt_secret, settings.jwt_algorithm)
    return {
        name: {"Authorization": f"Bearer {provider.issue_token(identity.id)}"}
        for name, identity in users.items()
    }


def _departure(hours: float = 1.0) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


RIDE_BODY = {
    "origin_name": "Airport T2",
    "origin_lat": 19.0896,
    "origin_lng": 72.8656,
    "destination_name": "Andheri",
    "destination_lat": 19.1136,
    "destination_lng": 72.8697,
    "vehicle_category": "sedan",
    "total_seats": 4,
    "estimated_fare": 240.0,
}

JOIN_BODY = {
    "pickup_name": "Terminal 2",
    "pickup_lat": 19.0896,
    "pickup_lng": 72.8656,
    "drop_name": "Andheri West",
    "drop_lat": 19.1136,
    "drop_lng": 72.8697,
}


async def _create_ride(client, auth, **overrides) -> dict:
    body = {**RIDE_BODY, "departure_time": _departure(), **overrides}
    resp = await client.post("/api/v1/rides", json=body, headers=auth["driver"])
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _join(client, auth, ride_id, passenger) -> dict:
    resp = await client.post(
        f"/api/v1/rides/{ride_id}/join", json=JOIN_BODY, headers=auth[passenger]
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _own_code(client, auth, passenger, ride_id) -> str:
    resp = await client.get("/api/v1/rides/joined", headers=auth[passenger])
    (membership,) = [m for m in resp.json() if m["ride_id"] == ride_id]
    return membership["verification_code"]


# ── Health / auth ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    body = {**RIDE_BODY, "departure_time": _departure()}
    resp = await client.post("/api/v1/rides", json=body)
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_garbage_token_is_401(client):
    resp = await client.get(
        "/api/v1/rides/mine", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401


# ── Create ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_ride(client, auth, users):
    ride = await _create_ride(client, auth)
    assert ride["status"] == "upcoming"
    assert ride["driver_id"] == users["driver"].id
    assert ride["available_seats"] == 3
    assert ride["max_passengers"] == 3


@pytest.mark.asyncio
async def test_create_ride_with_legacy_field_names(client, auth):
    body = {
        "start_location_name": "Airport T2",
        "start_lat": 19.0896,
        "start_lng": 72.8656,
        "end_location_name": "Andheri",
        "end_lat": 19.1136,
        "end_lng": 72.8697,
        "vehicle_type": "hatchback",
        "departure_time": _departure(),
        "total_seats": 3,
    }
    resp = await client.post("/api/v1/rides", json=body, headers=auth["driver"])
    assert resp.status_code == 201, resp.text
    ride = resp.json()
    assert ride["origin_lat"] == 19.0896
    assert ride["destination_lng"] == 72.8697
    assert ride["vehicle_category"] == "hatchback"
    assert ride["estimated_fare"] > 0


@pytest.mark.asyncio
async def test_create_ride_with_nested_points(client, auth):
    body = {
        "origin_name": "Airport T2",
        "origin": {"lat": 19.0896, "lng": 72.8656},
        "destination_name": "Andheri",
        "destination": {"latitude": 19.1136, "longitude": 72.8697},
        "departure_time": _departure(),
        "total_seats": 4,
    }
    resp = await client.post("/api/v1/rides", json=body, headers=auth["driver"])
    assert resp.status_code == 201, resp.text
    assert resp.json()["destination_lat"] == 19.1136


@pytest.mark.asyncio
async def test_passenger_cannot_create(client, auth):
    body = {**RIDE_BODY, "departure_time": _departure()}
    resp = await client.post("/api/v1/rides", json=body, headers=auth["alice"])
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


@pytest.mark.asyncio
async def test_unapproved_driver_cannot_create(client, auth):
    body = {**RIDE_BODY, "departure_time": _departure()}
    resp = await client.post("/api/v1/rides", json=body, headers=auth["pending_driver"])
    assert resp.status_code == 403
    assert resp.json()["code"] == "driver_not_approved"


@pytest.mark.asyncio
async def test_invalid_coordinates_rejected(client, auth):
    body = {**RIDE_BODY, "departure_time": _departure(), "origin_lat": 123.0}
    resp = await client.post("/api/v1/rides", json=body, headers=auth["driver"])
    assert resp.status_code == 422


# ── Search / listings ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_search_finds_nearby_ride(client, auth):
    ride = await _create_ride(client, auth)
    await _create_ride(
        client, auth, destination_lat=28.6139, destination_lng=77.2090
    )

    resp = await client.get(
        "/api/v1/rides/search",
        params={
            "origin_lat": 19.0900,
            "origin_lng": 72.8660,
            "destination_lat": 19.1140,
            "destination_lng": 72.8700,
        },
        headers=auth["alice"],
    )
    assert resp.status_code == 200
    results = resp.json()
    assert [r["ride"]["id"] for r in results] == [ride["id"]]
    assert results[0]["avg_distance_km"] < 1.0


@pytest.mark.asyncio
async def test_search_excludes_rides_outside_window(client, auth):
    await _create_ride(client, auth, departure_time=_departure(hours=6))
    resp = await client.get(
        "/api/v1/rides/search",
        params={
            "origin_lat": 19.0896,
            "origin_lng": 72.8656,
            "destination_lat": 19.1136,
            "destination_lng": 72.8697,
        },
        headers=auth["alice"],
    )
    assert resp.json() == []


@pytest.mark.asyncio
async def test_my_rides(client, auth):
    ride = await _create_ride(client, auth)
    resp = await client.get("/api/v1/rides/mine", headers=auth["driver"])
    assert [r["id"] for r in resp.json()] == [ride["id"]]
    resp = await client.get("/api/v1/rides/mine", headers=auth["other_driver"])
    assert resp.json() == []


@pytest.mark.asyncio
async def test_unknown_ride_is_404(client, auth):
    resp = await client.get("/api/v1/rides/9999", headers=auth["alice"])
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


# ── Join / accept / verify ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_join_with_legacy_names(client, auth):
    ride = await _create_ride(client, auth)
    body = {
        "pickup_location_name": "T2",
        "pickup": {"lat": 19.0896, "lng": 72.8656},
        "dropoff_name": "Andheri",
        "dropoff_lat": 19.1136,
        "dropoff_lng": 72.8697,
    }
    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/join", json=body, headers=auth["alice"]
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["status"] == "requested"


@pytest.mark.asyncio
async def test_join_twice_is_409(client, auth):
    ride = await _create_ride(client, auth)
    await _join(client, auth, ride["id"], "alice")
    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/join", json=JOIN_BODY, headers=auth["alice"]
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_joined"


@pytest.mark.asyncio
async def test_capacity_reached(client, auth):
    ride = await _create_ride(client, auth, total_seats=2)
    m = await _join(client, auth, ride["id"], "alice")
    await client.post(
        f"/api/v1/rides/{ride['id']}/memberships/{m['id']}/accept",
        headers=auth["driver"],
    )
    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/join", json=JOIN_BODY, headers=auth["bob"]
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "capacity_reached"


@pytest.mark.asyncio
async def test_codes_visible_only_to_passenger(client, auth):
    ride = await _create_ride(client, auth)
    m = await _join(client, auth, ride["id"], "alice")

    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/memberships/{m['id']}/accept",
        headers=auth["driver"],
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"
    assert "verification_code" not in resp.json()

    detail = (await client.get(f"/api/v1/rides/{ride['id']}", headers=auth["driver"])).json()
    assert detail["available_seats"] == 2
    assert len(detail["memberships"]) == 1
    assert "verification_code" not in detail["memberships"][0]

    code = await _own_code(client, auth, "alice", ride["id"])
    assert code and len(code) == 6


@pytest.mark.asyncio
async def test_other_passengers_memberships_hidden(client, auth):
    ride = await _create_ride(client, auth)
    await _join(client, auth, ride["id"], "alice")
    await _join(client, auth, ride["id"], "bob")

    detail = (await client.get(f"/api/v1/rides/{ride['id']}", headers=auth["bob"])).json()
    assert len(detail["memberships"]) == 1
    detail = (await client.get(f"/api/v1/rides/{ride['id']}", headers=auth["admin"])).json()
    assert len(detail["memberships"]) == 2


@pytest.mark.asyncio
async def test_verify_wrong_code(client, auth):
    ride = await _create_ride(client, auth)
    m = await _join(client, auth, ride["id"], "alice")
    await client.post(
        f"/api/v1/rides/{ride['id']}/memberships/{m['id']}/accept", headers=auth["driver"]
    )
    code = await _own_code(client, auth, "alice", ride["id"])
    wrong = "000000" if code != "000000" else "111111"

    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/memberships/{m['id']}/verify",
        json={"code": wrong},
        headers=auth["driver"],
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "code_mismatch"


@pytest.mark.asyncio
async def test_verify_rejects_non_numeric_code(client, auth):
    ride = await _create_ride(client, auth)
    m = await _join(client, auth, ride["id"], "alice")
    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/memberships/{m['id']}/verify",
        json={"otp": "12ab56"},
        headers=auth["driver"],
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_start_requires_verification(client, auth):
    ride = await _create_ride(client, auth)
    m = await _join(client, auth, ride["id"], "alice")
    await client.post(
        f"/api/v1/rides/{ride['id']}/memberships/{m['id']}/accept", headers=auth["driver"]
    )
    resp = await client.post(f"/api/v1/rides/{ride['id']}/start", headers=auth["driver"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "verification_required"


@pytest.mark.asyncio
async def test_cancel(client, auth):
    ride = await _create_ride(client, auth)
    resp = await client.patch(f"/api/v1/rides/{ride['id']}/cancel", headers=auth["driver"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"

    resp = await client.patch(f"/api/v1/rides/{ride['id']}/cancel", headers=auth["driver"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_transition"


# ── Full journey ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_full_ride_journey(client, auth, users):
    ride = await _create_ride(client, auth)
    rid = ride["id"]
    memberships = {}
    for name in ("alice", "bob"):
        m = await _join(client, auth, rid, name)
        resp = await client.post(
            f"/api/v1/rides/{rid}/memberships/{m['id']}/accept", headers=auth["driver"]
        )
        assert resp.status_code == 200
        memberships[name] = m["id"]

    for name, mid in memberships.items():
        code = await _own_code(client, auth, name, rid)
        resp = await client.post(
            f"/api/v1/rides/{rid}/memberships/{mid}/verify",
            json={"otp": code},
            headers=auth["driver"],
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["verified"] is True

    resp = await client.post(f"/api/v1/rides/{rid}/start", headers=auth["driver"])
    assert resp.json()["status"] == "ongoing"

    resp = await client.post(f"/api/v1/rides/{rid}/complete", headers=auth["driver"])
    completed = resp.json()
    assert completed["status"] == "completed"
    assert completed["distance_km"] == pytest.approx(10.0)
    assert completed["points_awarded"] is False

    resp = await client.post(
        f"/api/v1/rides/{rid}/pay", json={"mode": "split"}, headers=auth["alice"]
    )
    assert resp.status_code == 200
    assert resp.json()["membership"]["payment_status"] == "paid"
    assert resp.json()["settlement"]["reason"] == "payments_outstanding"

    resp = await client.post(
        f"/api/v1/rides/{rid}/pay", json={"mode": "full"}, headers=auth["bob"]
    )
    settlement = resp.json()["settlement"]
    assert settlement["awarded"] is True
    assert settlement["credited"][str(users["driver"].id)] == 20

    resp = await client.post(f"/api/v1/rides/{rid}/settle", headers=auth["driver"])
    assert resp.json() == {
        "ride_id": rid,
        "awarded": False,
        "reason": "already_awarded",
        "credited": {},
    }

    resp = await client.post(
        f"/api/v1/rides/{rid}/memberships/{memberships['alice']}/confirm-payment",
        headers=auth["driver"],
    )
    assert resp.json()["membership"]["payment_status"] == "confirmed"

    loyalty = (await client.get("/api/v1/loyalty/me", headers=auth["alice"])).json()
    assert loyalty["points"] == 10
    assert loyalty["total_distance_km"] == pytest.approx(10.0)
    loyalty = (await client.get("/api/v1/loyalty/me", headers=auth["driver"])).json()
    assert loyalty["points"] == 20

    resp = await client.post(f"/api/v1/rides/{rid}/close", headers=auth["driver"])
    assert resp.json()["status"] == "closed"


@pytest.mark.asyncio
async def test_loyalty_starts_at_zero(client, auth):
    resp = await client.get("/api/v1/loyalty/me", headers=auth["carol"])
    assert resp.status_code == 200
    assert resp.json()["points"] == 0
