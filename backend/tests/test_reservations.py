import asyncio
from datetime import datetime, time, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.app.core.booking_lock import LocalBookingLock
from backend.app.core.config import settings
from backend.app.dependencies import get_booking_lock, get_store
from backend.app.main import app
from backend.app.scheduling.models import CancellationPolicy
from backend.app.services.store import InMemoryReservationStore

pytestmark = pytest.mark.asyncio

DAY = datetime.now(timezone.utc).date() + timedelta(days=30)
PREFIX = settings.API_PREFIX


@pytest.fixture
def store(make_restaurant):
    store = InMemoryReservationStore(
        [
            make_restaurant(),
            make_restaurant(
                restaurant_id="phone-only",
                policy=CancellationPolicy(allow_online_cancellation=False),
            ),
            make_restaurant(
                restaurant_id="strict",
                policy=CancellationPolicy(hours_before_no_fee=24 * 60, fee_percentage=50.0),
            ),
        ]
    )
    lock = LocalBookingLock(wait_seconds=5)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_booking_lock] = lambda: lock
    yield store
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(store):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def payload(hour=19, minute=0, **overrides):
    body = {
        "restaurant_id": "resto-1",
        "user_id": "guest-1",
        "party_size": 2,
        "reservation_time": datetime.combine(DAY, time(hour, minute), tzinfo=timezone.utc).isoformat(),
    }
    body.update(overrides)
    return body


async def test_create_reservation_and_conflict(client):
    response = await client.post(f"{PREFIX}/reservations", json=payload(notes="pytest"))
    assert response.status_code == 201, response.text
    created = response.json()
    assert created["status"] == "PENDING"
    assert created["table_id"] == "t1"
    assert created["turn_time_used"] == 90

    second = await client.post(f"{PREFIX}/reservations", json=payload(19, 30, user_id="guest-2"))
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "no_availability"

    fetched = await client.get(f"{PREFIX}/reservations/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json() == created


async def test_availability_reflects_bookings(client):
    await client.post(f"{PREFIX}/reservations", json=payload(auto_confirm=True))

    response = await client.get(
        f"{PREFIX}/restaurants/resto-1/availability",
        params={"date": DAY.isoformat(), "party_size": 2},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["has_availability"] is True
    assert data["date"] == DAY.isoformat()
    slots = {slot["time"]: slot for slot in data["slots"]}
    assert slots["17:00"] == {"time": "17:00", "available": True, "table_id": "t1"}
    assert slots["19:00"]["available"] is False
    assert slots["20:30"]["available"] is True


async def test_availability_for_unknown_restaurant_is_empty(client):
    response = await client.get(
        f"{PREFIX}/restaurants/nowhere/availability",
        params={"date": DAY.isoformat()},
    )
    assert response.status_code == 200
    assert response.json()["slots"] == []
    assert response.json()["has_availability"] is False


async def test_create_rejections(client):
    missing = await client.post(f"{PREFIX}/reservations", json=payload(restaurant_id="nowhere"))
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "restaurant_not_found"

    naive = payload()
    naive["reservation_time"] = datetime.combine(DAY, time(19, 0)).isoformat()
    response = await client.post(f"{PREFIX}/reservations", json=naive)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "past_time"
    assert "timezone" in response.json()["detail"]["message"]

    past = payload()
    past["reservation_time"] = "2020-01-01T19:00:00+00:00"
    response = await client.post(f"{PREFIX}/reservations", json=past)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "past_time"

    too_big = await client.post(f"{PREFIX}/reservations", json=payload(party_size=25))
    assert too_big.status_code == 422


async def test_turn_time_override_bounds(client):
    short = await client.post(f"{PREFIX}/reservations", json=payload(17, turn_time_override=10))
    assert short.status_code == 201, short.text
    assert short.json()["turn_time_used"] == 10

    assert (await client.post(f"{PREFIX}/reservations", json=payload(18, turn_time_override=0))).status_code == 422
    assert (await client.post(f"{PREFIX}/reservations", json=payload(18, turn_time_override=481))).status_code == 422


async def test_cancel_frees_slot(client):
    created = (await client.post(f"{PREFIX}/reservations", json=payload())).json()

    cancelled = await client.patch(f"{PREFIX}/reservations/{created['id']}", json={"action": "cancel"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"

    again = await client.patch(f"{PREFIX}/reservations/{created['id']}", json={"action": "cancel"})
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "already_cancelled"

    rebook = await client.post(f"{PREFIX}/reservations", json=payload(user_id="guest-2"))
    assert rebook.status_code == 201


async def test_status_actions(client):
    created = (await client.post(f"{PREFIX}/reservations", json=payload())).json()
    url = f"{PREFIX}/reservations/{created['id']}"

    assert (await client.patch(url, json={"action": "complete"})).status_code == 409
    assert (await client.patch(url, json={"action": "confirm"})).json()["status"] == "CONFIRMED"
    assert (await client.patch(url, json={"action": "complete"})).json()["status"] == "COMPLETED"
    assert (await client.patch(url, json={"action": "reopen"})).status_code == 422


async def test_cancellation_policy_responses(client):
    phone_only = (await client.post(f"{PREFIX}/reservations", json=payload(restaurant_id="phone-only"))).json()
    response = await client.patch(f"{PREFIX}/reservations/{phone_only['id']}", json={"action": "cancel"})
    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["code"] == "online_cancellation_disallowed"
    assert detail["restaurant_phone"] == "+1-555-0100"

    strict = (await client.post(f"{PREFIX}/reservations", json=payload(restaurant_id="strict"))).json()
    response = await client.patch(f"{PREFIX}/reservations/{strict['id']}", json={"action": "cancel"})
    assert response.status_code == 422
    assert response.json()["detail"]["cancellation_policy"]["fee_percentage"] == 50.0


async def test_unknown_reservation(client):
    assert (await client.get(f"{PREFIX}/reservations/missing")).status_code == 404
    response = await client.patch(f"{PREFIX}/reservations/missing", json={"action": "cancel"})
    assert response.status_code == 404


async def test_list_reservations(client):
    await client.post(f"{PREFIX}/reservations", json=payload(17, user_id="a"))
    await client.post(f"{PREFIX}/reservations", json=payload(20, 30, user_id="b"))

    everyone = (await client.get(f"{PREFIX}/reservations", params={"restaurant_id": "resto-1"})).json()
    assert [r["user_id"] for r in everyone["reservations"]] == ["b", "a"]
    only_a = (await client.get(f"{PREFIX}/reservations", params={"user_id": "a"})).json()
    assert len(only_a["reservations"]) == 1


async def test_parallel_commit_race(client, store):
    responses = await asyncio.gather(
        *(client.post(f"{PREFIX}/reservations", json=payload(21, user_id=f"g{i}")) for i in range(2))
    )

    assert sorted(response.status_code for response in responses) == [201, 409]
    assert len(await store.list_reservations(restaurant_id="resto-1")) == 1


async def test_health_endpoints(client, monkeypatch):
    monkeypatch.setattr(settings, "RESERVATION_STORE", "memory")
    monkeypatch.setattr(settings, "BOOKING_LOCK_BACKEND", "local")

    health = await client.get(f"{PREFIX}/healthz")
    readiness = await client.get(f"{PREFIX}/readiness")

    assert health.status_code == 200
    assert health.json() == {"ok": True}
    assert readiness.status_code == 200
    assert readiness.json() == {"ready": True}


async def test_table_utilization_endpoint(client):
    created = (await client.post(f"{PREFIX}/reservations", json=payload(auto_confirm=True))).json()

    response = await client.get(f"{PREFIX}/restaurants/resto-1/tables", params={"date": DAY.isoformat()})
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["restaurant_id"] == "resto-1"
    assert data["operating_hours"] == [{"open_time": "17:00:00", "close_time": "22:00:00"}]
    assert [t["id"] for t in data["tables"]] == ["t1"]
    assert [r["id"] for r in data["tables"][0]["reservations"]] == [created["id"]]

    other_day = (DAY + timedelta(days=1)).isoformat()
    empty = (await client.get(f"{PREFIX}/restaurants/resto-1/tables", params={"date": other_day})).json()
    assert empty["tables"][0]["reservations"] == []

    missing = await client.get(f"{PREFIX}/restaurants/nowhere/tables", params={"date": DAY.isoformat()})
    assert missing.status_code == 404
    assert missing.json()["detail"]["code"] == "restaurant_not_found"
