"""
Tests for the event endpoints.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from reservation_engine.services import reservation_service


def future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.mark.asyncio
async def test_create_event(client, admin_headers):
    """Test creating a new event."""
    response = await client.post(
        "/api/v1/events/",
        json={
            "name": "Test Concert",
            "description": "A great concert",
            "eventDate": future(),
            "location": "Madison Square Garden",
            "maxCapacity": 500,
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Test Concert"
    assert data["max_capacity"] == 500
    assert data["available_spots"] == 500
    assert data["location"] == "Madison Square Garden"
    assert data["online_link"] is None


@pytest.mark.asyncio
async def test_create_online_event(client, admin_headers):
    response = await client.post(
        "/api/v1/events/",
        json={
            "name": "Webinar",
            "event_date": future(),
            "online_link": "https://meet.example.com/webinar",
            "max_capacity": 50,
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.json()["online_link"] == "https://meet.example.com/webinar"
    assert response.json()["location"] is None


@pytest.mark.asyncio
async def test_create_event_requires_auth(client):
    """Test that creating an event requires a token."""
    response = await client.post(
        "/api/v1/events/",
        json={"name": "Test", "eventDate": future(), "location": "Venue", "maxCapacity": 100},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_event_forbidden_for_users(client, alice_headers):
    response = await client.post(
        "/api/v1/events/",
        json={"name": "Test", "eventDate": future(), "location": "Venue", "maxCapacity": 100},
        headers=alice_headers,
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "NOT_AUTHORIZED"


@pytest.mark.asyncio
async def test_create_event_with_both_venues(client, admin_headers):
    response = await client.post(
        "/api/v1/events/",
        json={
            "name": "Hybrid",
            "eventDate": future(),
            "location": "Venue",
            "onlineLink": "https://meet.example.com/x",
            "maxCapacity": 10,
        },
        headers=admin_headers,
    )

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_FAILED"
    assert {d["field"] for d in error["details"]} == {"location", "online_link"}


@pytest.mark.asyncio
async def test_create_event_without_venue(client, admin_headers):
    response = await client.post(
        "/api/v1/events/",
        json={"name": "Nowhere", "eventDate": future(), "location": "   ", "maxCapacity": 10},
        headers=admin_headers,
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
async def test_create_event_in_the_past(client, admin_headers):
    """Test that past event dates are rejected."""
    response = await client.post(
        "/api/v1/events/",
        json={"name": "Past", "eventDate": future(-1), "location": "Venue", "maxCapacity": 10},
        headers=admin_headers,
    )

    assert response.status_code == 422
    assert response.json()["error"]["details"][0]["field"] == "event_date"


@pytest.mark.asyncio
async def test_create_event_invalid_capacity(client, admin_headers):
    response = await client.post(
        "/api/v1/events/",
        json={"name": "Zero", "eventDate": future(), "location": "Venue", "maxCapacity": 0},
        headers=admin_headers,
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
async def test_list_events(client, make_event):
    """Test listing events ordered by date."""
    await make_event(name="Later", days_ahead=20)
    await make_event(name="Sooner", days_ahead=10)

    response = await client.get("/api/v1/events/")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [e["name"] for e in data["events"]] == ["Sooner", "Later"]
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_list_events_filtered_by_name(client, make_event):
    await make_event(name="Jazz Night")
    await make_event(name="Rock Festival")

    response = await client.get("/api/v1/events/", params={"name": "jazz"})

    assert response.status_code == 200
    assert [e["name"] for e in response.json()["events"]] == ["Jazz Night"]


@pytest.mark.asyncio
async def test_list_events_filtered_by_date(client, make_event):
    target = await make_event(name="Target", days_ahead=5)
    await make_event(name="Other", days_ahead=9)

    day = (datetime.now(timezone.utc) + timedelta(days=5)).date().isoformat()
    response = await client.get("/api/v1/events/", params={"date": day})

    assert response.status_code == 200
    assert [e["id"] for e in response.json()["events"]] == [str(target.id)]


@pytest.mark.asyncio
async def test_get_event(client, make_event):
    event = await make_event(max_capacity=42)

    response = await client.get(f"/api/v1/events/{event.id}")

    assert response.status_code == 200
    assert response.json()["id"] == str(event.id)
    assert response.json()["available_spots"] == 42


@pytest.mark.asyncio
async def test_get_nonexistent_event(client):
    """Test getting an event that doesn't exist."""
    response = await client.get(f"/api/v1/events/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "EVENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_update_shrinks_capacity(client, admin_headers, make_event, capacity_of):
    """10 seats, 8 available, shrink to 3: 8 + (3 - 10) leaves one spot."""
    event = await make_event(max_capacity=10, available_spots=8)

    response = await client.patch(
        f"/api/v1/events/{event.id}", json={"maxCapacity": 3}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["max_capacity"] == 3
    assert response.json()["available_spots"] == 1
    assert (await capacity_of(event.id))[:2] == (3, 1)


@pytest.mark.asyncio
async def test_update_shrink_below_confirmed_keeps_reservations(
    client, admin_headers, make_event, capacity_of, alice, bob
):
    """Shrinking under the confirmed count blocks new holds but cancels nothing."""
    event = await make_event(max_capacity=5)
    await reservation_service.reserve_spot(alice, event.id)
    await reservation_service.reserve_spot(bob, event.id)

    response = await client.patch(
        f"/api/v1/events/{event.id}", json={"maxCapacity": 1}, headers=admin_headers
    )

    assert response.status_code == 200
    assert (await capacity_of(event.id)) == (1, 0, 2)


@pytest.mark.asyncio
async def test_update_grows_capacity(client, admin_headers, make_event, capacity_of, alice, bob):
    event = await make_event(max_capacity=2)
    await reservation_service.reserve_spot(alice, event.id)
    await reservation_service.reserve_spot(bob, event.id)

    response = await client.patch(
        f"/api/v1/events/{event.id}", json={"max_capacity": 5}, headers=admin_headers
    )

    assert response.status_code == 200
    assert (await capacity_of(event.id)) == (5, 3, 2)


@pytest.mark.asyncio
async def test_update_switches_venue(client, admin_headers, make_event):
    """Clearing the location while setting a link turns the event virtual."""
    event = await make_event()

    response = await client.patch(
        f"/api/v1/events/{event.id}",
        json={"location": None, "onlineLink": "https://stream.example.com/live"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["location"] is None
    assert response.json()["online_link"] == "https://stream.example.com/live"


@pytest.mark.asyncio
async def test_update_rejects_second_venue(client, admin_headers, make_event):
    """Adding a link to an event that keeps its location is invalid."""
    event = await make_event()

    response = await client.patch(
        f"/api/v1/events/{event.id}",
        json={"onlineLink": "https://stream.example.com/live"},
        headers=admin_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_forbidden_for_users(client, alice_headers, make_event):
    event = await make_event()

    response = await client.patch(
        f"/api/v1/events/{event.id}", json={"name": "Mine now"}, headers=alice_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_nonexistent_event(client, admin_headers):
    response = await client.patch(
        f"/api/v1/events/{uuid.uuid4()}", json={"name": "Ghost"}, headers=admin_headers
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_event_removes_reservations(client, admin_headers, make_event, alice):
    event = await make_event()
    await reservation_service.reserve_spot(alice, event.id)

    response = await client.delete(f"/api/v1/events/{event.id}", headers=admin_headers)
    assert response.status_code == 204

    assert (await client.get(f"/api/v1/events/{event.id}")).status_code == 404
    assert await reservation_service.list_for_user(alice) == []

    again = await client.delete(f"/api/v1/events/{event.id}", headers=admin_headers)
    assert again.status_code == 404
