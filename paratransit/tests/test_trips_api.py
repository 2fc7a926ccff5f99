"""
Integration tests for the Trip and Run API.

Verifies Book -> Inspect Run -> Edit -> Cancel through HTTP.
"""

import pytest

from paratransit.app.domain.scheduling.trip_scheduler import DRIVER_MISMATCH, NO_CAPACITY


def trip_payload(fleet, **extra):
    payload = {
        "provider_id": fleet.provider_id,
        "customer_id": fleet.customer_id,
        "vehicle_id": fleet.vehicle_id,
        "pickup_time": "2024-01-08 09:00",
        "appointment_time": "2024-01-08 10:00",
        "pickup_address": "1 Elm St",
        "dropoff_address": "9 Oak Ave",
        "trip_purpose": "Medical",
    }
    payload.update(extra)
    return payload


# TEST 1: Booking creates a business-hours run
@pytest.mark.asyncio
async def test_book_trip_creates_run(client, fleet):
    """A trip with a vehicle lands on a new 6am-8pm run."""
    response = await client.post(
        "/v1/trips",
        json=trip_payload(fleet, pickup_time="01/08/2024 9:00 a", appointment_time="01/08/2024 10:00 AM"),
    )
    
    assert response.status_code == 201
    data = response.json()
    assert data["pickup_time"] == "2024-01-08T09:00:00"
    assert data["appointment_time"] == "2024-01-08T10:00:00"
    assert data["run_id"] is not None
    assert data["vehicle_id"] == fleet.vehicle_id
    assert data["run_summary"] == "6:00am-8:00pm"
    
    runs = await client.get("/v1/runs", params={"vehicle_id": fleet.vehicle_id})
    assert runs.status_code == 200
    (run,) = runs.json()
    assert run["id"] == data["run_id"]
    assert run["scheduled_start_time"] == "2024-01-08T06:00:00"
    assert run["scheduled_end_time"] == "2024-01-08T20:00:00"
    assert run["trip_ids"] == [data["id"]]


# TEST 2: Unparseable times are rejected before scheduling
@pytest.mark.asyncio
async def test_unparseable_time_is_rejected(client, fleet):
    response = await client.post("/v1/trips", json=trip_payload(fleet, pickup_time="tomorrow at 9"))
    
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION"
    assert any("pickup_time" in error["loc"] for error in body["details"]["errors"])
    
    runs = await client.get("/v1/runs")
    assert runs.json() == []


# TEST 3: Driver mismatch is reported per field
@pytest.mark.asyncio
async def test_driver_mismatch_returns_field_errors(client, fleet):
    """The run's driver wins; asking for someone else is a validation error."""
    created = await client.post(
        "/v1/runs",
        json={
            "provider_id": fleet.provider_id,
            "vehicle_id": fleet.vehicle_id,
            "driver_id": 1,
            "date": "2024-01-08",
            "name": "Morning",
            "scheduled_start_time": "2024-01-08 08:00",
            "scheduled_end_time": "2024-01-08 12:00",
        },
    )
    assert created.status_code == 201
    assert created.json()["label"] == "Morning"
    
    response = await client.post("/v1/trips", json=trip_payload(fleet, driver_id=2))
    
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_TRIP"
    assert body["details"]["errors"]["driver_id"] == [DRIVER_MISMATCH]
    
    trips = await client.get("/v1/trips")
    assert trips.json() == []


# TEST 4: Effective driver comes from the run
@pytest.mark.asyncio
async def test_trip_reports_run_driver(client, fleet):
    await client.post(
        "/v1/runs",
        json={
            "provider_id": fleet.provider_id,
            "vehicle_id": fleet.vehicle_id,
            "driver_id": 3,
            "date": "2024-01-08",
        },
    )
    
    response = await client.post("/v1/trips", json=trip_payload(fleet))
    
    assert response.status_code == 201
    assert response.json()["driver_id"] == 3
    
    by_driver = await client.get("/v1/trips", params={"driver_id": 3})
    assert [trip["id"] for trip in by_driver.json()] == [response.json()["id"]]
    other_driver = await client.get("/v1/trips", params={"driver_id": 4})
    assert other_driver.json() == []


# TEST 5: Recurring trips and stopping recurrence
@pytest.mark.asyncio
async def test_recurrence_can_be_started_and_stopped(client, fleet):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(
            fleet,
            recurrence={"weekdays": ["monday"], "vehicle_id": fleet.vehicle_id},
        ),
    )
    
    assert response.status_code == 201
    data = response.json()
    assert data["repeating_trip_id"] is not None
    assert len(data["instantiated_trip_ids"]) == 2
    
    jan_15 = await client.get("/v1/trips", params={"date": "2024-01-15"})
    assert len(jan_15.json()) == 1
    
    stopped = await client.patch(f"/v1/trips/{data['id']}", json={"recurrence": {"weekdays": []}})
    
    assert stopped.status_code == 200
    assert stopped.json()["repeating_trip_id"] is None
    jan_15 = await client.get("/v1/trips", params={"date": "2024-01-15"})
    assert jan_15.json() == []


# TEST 6: Unknown weekdays are rejected
@pytest.mark.asyncio
async def test_unknown_weekday_is_rejected(client, fleet):
    response = await client.post(
        "/v1/trips",
        json=trip_payload(fleet, recurrence={"weekdays": ["funday"]}),
    )
    
    assert response.status_code == 422


# TEST 7: Editing times moves the trip
@pytest.mark.asyncio
async def test_patch_moves_trip_to_new_day(client, fleet):
    created = (await client.post("/v1/trips", json=trip_payload(fleet))).json()
    
    response = await client.patch(
        f"/v1/trips/{created['id']}",
        json={"pickup_time": "2024-01-09 13:00", "appointment_time": "2024-01-09 13:45"},
    )
    
    assert response.status_code == 200
    data = response.json()
    assert data["run_id"] != created["run_id"]
    old_run = await client.get(f"/v1/runs/{created['run_id']}")
    assert old_run.status_code == 404
    runs = await client.get("/v1/runs", params={"date": "2024-01-09"})
    assert [run["id"] for run in runs.json()] == [data["run_id"]]


# TEST 7b: A rejected edit leaves the trip as it was
@pytest.mark.asyncio
async def test_rejected_patch_returns_errors_and_keeps_trip(client, fleet):
    """Four seats on the van cannot take the rider plus nine guests."""
    created = (await client.post("/v1/trips", json=trip_payload(fleet))).json()
    
    response = await client.patch(f"/v1/trips/{created['id']}", json={"guest_count": 9})
    
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_TRIP"
    assert body["details"]["errors"]["base"] == [NO_CAPACITY]
    
    trip = await client.get(f"/v1/trips/{created['id']}")
    assert trip.status_code == 200
    assert trip.json()["guest_count"] == 0
    assert trip.json()["run_id"] == created["run_id"]


# TEST 8: Cancelling keeps the run
@pytest.mark.asyncio
async def test_delete_trip_keeps_run(client, fleet):
    created = (await client.post("/v1/trips", json=trip_payload(fleet))).json()
    
    response = await client.delete(f"/v1/trips/{created['id']}")
    
    assert response.status_code == 204
    assert (await client.get(f"/v1/trips/{created['id']}")).status_code == 404
    run = await client.get(f"/v1/runs/{created['run_id']}")
    assert run.status_code == 200
    assert run.json()["trip_ids"] == []


# TEST 9: Missing resources
@pytest.mark.asyncio
async def test_missing_trip_returns_404(client):
    response = await client.get("/v1/trips/999")
    
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"
    assert (await client.patch("/v1/trips/999", json={"notes": "x"})).status_code == 404
    deleted = await client.delete("/v1/trips/999")
    assert deleted.status_code == 404
    assert deleted.json()["error_code"] == "ERR_NOT_FOUND_001"


# TEST 10: Manual run creation
@pytest.mark.asyncio
async def test_overlapping_run_is_rejected(client, fleet):
    """A second run on the same vehicle may not overlap the first."""
    first = await client.post(
        "/v1/runs",
        json={"provider_id": fleet.provider_id, "vehicle_id": fleet.vehicle_id, "date": "2024-01-08"},
    )
    assert first.status_code == 201
    assert first.json()["scheduled_start_time"] == "2024-01-08T06:00:00"
    
    second = await client.post(
        "/v1/runs",
        json={
            "provider_id": fleet.provider_id,
            "vehicle_id": fleet.vehicle_id,
            "date": "2024-01-08",
            "scheduled_start_time": "2024-01-08 19:00",
            "scheduled_end_time": "2024-01-08 22:00",
        },
    )
    assert second.status_code == 409
    assert second.json()["error_code"] == "ERR_CONFLICT"
    
    evening = await client.post(
        "/v1/runs",
        json={
            "provider_id": fleet.provider_id,
            "vehicle_id": fleet.vehicle_id,
            "date": "2024-01-08",
            "scheduled_start_time": "2024-01-08 20:00",
            "scheduled_end_time": "2024-01-08 22:00",
        },
    )
    assert evening.status_code == 201


@pytest.mark.asyncio
async def test_run_input_is_checked(client, fleet):
    wrong_provider = await client.post(
        "/v1/runs",
        json={"provider_id": fleet.provider_id + 100, "vehicle_id": fleet.vehicle_id, "date": "2024-01-08"},
    )
    assert wrong_provider.status_code == 400
    
    half_window = await client.post(
        "/v1/runs",
        json={
            "provider_id": fleet.provider_id,
            "vehicle_id": fleet.vehicle_id,
            "date": "2024-01-08",
            "scheduled_start_time": "2024-01-08 08:00",
        },
    )
    assert half_window.status_code == 422
    
    other_day = await client.post(
        "/v1/runs",
        json={
            "provider_id": fleet.provider_id,
            "vehicle_id": fleet.vehicle_id,
            "date": "2024-01-08",
            "scheduled_start_time": "2024-01-09 08:00",
            "scheduled_end_time": "2024-01-09 09:00",
        },
    )
    assert other_day.status_code == 422


# TEST 11: Health
@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["business_hours"] == [6, 20]
