"""Tests for the FastAPI endpoints."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import NEXT_MONDAY, FakeClock, at
from slotengine.config import Settings
from slotengine.main import create_app
from slotengine.storage import MemoryStore

PROVIDER = {
    "id": "dr-rodriguez",
    "name": "Dr. Emily Rodriguez",
    "specialties": ["dermatology", "general"],
    "availability": [
        {"id": "mon-pm", "weekday": 1, "start_time": "13:00", "end_time": "15:00"},
        {
            "id": "thu",
            "weekday": 4,
            "start_time": "10:00",
            "end_time": "16:00",
            "recurrence": "FREQ=WEEKLY;INTERVAL=1;BYDAY=TH",
        },
    ],
    "rating": 4.7,
    "location": "Westside Care",
}


@pytest.fixture
def client():
    app = create_app(Settings(timezone="UTC"), MemoryStore(), clock=FakeClock())
    with TestClient(app) as c:
        assert c.post("/providers", json=PROVIDER).status_code == 201
        yield c


def _booking(start, minutes=30, **extra):
    return {
        "provider_id": "dr-rodriguez",
        "start": start.isoformat(),
        "end": (start + timedelta(minutes=minutes)).isoformat(),
        "owner_name": "John Smith",
        "subject_name": "Buddy",
        **extra,
    }


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_provider_listing_and_lookup(client):
    assert [p["id"] for p in client.get("/providers").json()] == ["dr-rodriguez"]
    assert client.get("/providers", params={"specialty": "derm"}).json()[0]["name"] == "Dr. Emily Rodriguez"
    assert client.get("/providers", params={"specialty": "surgery"}).json() == []
    assert client.get("/providers/dr-rodriguez").json()["location"] == "Westside Care"
    assert client.get("/providers/nobody").status_code == 404
    assert client.post("/providers", json=PROVIDER).status_code == 409


def test_create_provider_rejects_mismatched_recurrence(client):
    bad = {
        "name": "Dr. Bad",
        "availability": [
            {"weekday": 1, "start_time": "09:00", "end_time": "10:00",
             "recurrence": "FREQ=WEEKLY;INTERVAL=1;BYDAY=TU"},
        ],
    }
    assert client.post("/providers", json=bad).status_code == 422


def test_list_slots(client):
    params = {
        "start": NEXT_MONDAY.isoformat(),
        "end": (NEXT_MONDAY + timedelta(hours=23)).isoformat(),
    }
    resp = client.get("/providers/dr-rodriguez/slots", params=params)
    assert resp.status_code == 200
    slots = resp.json()
    assert len(slots) == 4
    assert all(s["provider_id"] == "dr-rodriguez" for s in slots)

    hourly = client.get("/providers/dr-rodriguez/slots", params={**params, "slot_minutes": 60}).json()
    assert len(hourly) == 2


def test_list_slots_unknown_provider(client):
    params = {"start": NEXT_MONDAY.isoformat(), "end": (NEXT_MONDAY + timedelta(days=1)).isoformat()}
    assert client.get("/providers/nobody/slots", params=params).status_code == 404


def test_next_slots(client):
    resp = client.get("/providers/dr-rodriguez/next-slots", params={"count": 2})
    assert resp.status_code == 200
    assert len(resp.json()) == 2


def test_book_and_conflict(client):
    start = at(NEXT_MONDAY, "13:30")
    resp = client.post("/appointments", json=_booking(start))
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["appointment"]["status"] == "scheduled"
    appointment_id = body["appointment"]["id"]

    again = client.post("/appointments", json=_booking(start))
    assert again.status_code == 409
    assert again.json()["error"] == "slot_unavailable"
    assert len(again.json()["alternatives"]) == 3

    assert client.get(f"/appointments/{appointment_id}").status_code == 200
    assert [a["id"] for a in client.get("/appointments", params={"owner": "smith"}).json()] == [appointment_id]
    assert client.get("/appointments", params={"provider_id": "other"}).json() == []


def test_book_errors(client):
    assert client.post("/appointments", json={"provider_id": "dr-rodriguez"}).status_code == 422
    resp = client.post("/appointments", json=_booking(NEXT_MONDAY - timedelta(days=10)))
    assert resp.status_code == 422
    assert resp.json()["error"] == "in_the_past"
    assert client.post("/appointments", json=_booking(at(NEXT_MONDAY, "13:30"), provider_id="x")).status_code == 404


def test_batch_booking(client):
    resp = client.post("/appointments/batch", json=[
        _booking(at(NEXT_MONDAY, "13:00")),
        _booking(at(NEXT_MONDAY, "13:05")),
    ])
    assert resp.status_code == 200
    assert [r["success"] for r in resp.json()] == [True, False]


def test_reschedule_and_cancel(client):
    appointment_id = client.post("/appointments", json=_booking(at(NEXT_MONDAY, "14:00"))).json()["appointment"]["id"]

    new_start = at(NEXT_MONDAY, "14:30")
    resp = client.post(
        f"/appointments/{appointment_id}/reschedule",
        json={"start": new_start.isoformat(), "end": (new_start + timedelta(minutes=30)).isoformat()},
    )
    assert resp.status_code == 200
    assert resp.json()["appointment"]["id"] == appointment_id

    cancelled = client.post(f"/appointments/{appointment_id}/cancel", json={"reason": "sick"})
    assert cancelled.status_code == 200
    assert cancelled.json()["appointment"]["status"] == "cancelled"
    assert cancelled.json()["appointment"]["notes"] == "Cancellation reason: sick"

    again = client.post(f"/appointments/{appointment_id}/cancel")
    assert again.status_code == 409
    assert again.json()["error"] == "already_cancelled"

    assert client.post("/appointments/missing/cancel").status_code == 404


def test_replace_availability(client):
    resp = client.put(
        "/providers/dr-rodriguez/availability",
        json={"rules": [{"weekday": 2, "start_time": "08:00", "end_time": "09:00"}]},
    )
    assert resp.status_code == 200
    assert [r["weekday"] for r in resp.json()["availability"]] == [2]
    assert client.put("/providers/nobody/availability", json={"rules": []}).status_code == 404


def test_cancel_day(client):
    for hhmm in ("13:00", "13:30", "14:00"):
        assert client.post("/appointments", json=_booking(at(NEXT_MONDAY, hhmm))).status_code == 201

    resp = client.post(
        "/providers/dr-rodriguez/cancel-day",
        json={"date": NEXT_MONDAY.date().isoformat(), "reason": "clinic closed"},
    )
    assert resp.status_code == 200
    results = resp.json()
    assert len(results) == 3
    assert all(r["success"] for r in results)

    slots = client.get("/providers/dr-rodriguez/slots", params={
        "start": NEXT_MONDAY.isoformat(),
        "end": (NEXT_MONDAY + timedelta(hours=23)).isoformat(),
    }).json()
    assert len(slots) == 4


def test_services_share_provider_locks():
    app = create_app(Settings(timezone="UTC"), MemoryStore(), clock=FakeClock())
    assert app.state.scheduling.locks is app.state.cancellation.locks
