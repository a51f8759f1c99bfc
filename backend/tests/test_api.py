from sqlalchemy.exc import OperationalError


async def _create_tour(client, **availability):
    template = {"available_days": [1, 3], "slots": [{"time": "09:00", "capacity": 10}]}
    template.update(availability)
    response = await client.post("/tours/", json={"title": "Old town walk", "availability": template})
    assert response.status_code == 201
    return response.json()["id"]


async def _book(client, tour_id, day="2025-09-01", guests=2, **extra):
    return await client.post(
        "/bookings/",
        json={"tour_id": tour_id, "date": day, "time": "09:00", "adult_guests": guests, **extra},
    )


async def test_health(client):
    response = await client.get("/health")
    assert response.json() == {"status": "ok"}


async def test_tour_round_trip(client):
    tour_id = await _create_tour(client)

    response = await client.get(f"/tours/{tour_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["availability"]["available_days"] == [1, 3]
    assert body["availability"]["slots"] == [{"time": "09:00", "capacity": 10}]


async def test_tour_template_validation(client):
    response = await client.post(
        "/tours/",
        json={"title": "Bad", "availability": {"available_days": [7], "slots": []}},
    )
    assert response.status_code == 422

    response = await client.post(
        "/tours/",
        json={
            "title": "Bad",
            "availability": {"slots": [{"time": "09:00", "capacity": 1}, {"time": "09:00", "capacity": 2}]},
        },
    )
    assert response.status_code == 422


async def test_availability_wire_format(client):
    tour_id = await _create_tour(client)

    response = await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"availableSlotsByDate", "fullyBookedDates"}
    assert body["availableSlotsByDate"]["2025-09-01"] == [{"time": "09:00", "remaining": 10}]
    assert len(body["availableSlotsByDate"]) == 9
    assert body["fullyBookedDates"] == []


async def test_availability_errors(client):
    tour_id = await _create_tour(client)

    missing = await client.get(f"/tours/{tour_id}/availability")
    malformed = await client.get(f"/tours/{tour_id}/availability", params={"month": "09-2025"})
    unknown = await client.get("/tours/9999/availability", params={"month": "2025-09"})

    assert missing.status_code == 400
    assert malformed.status_code == 400
    assert unknown.status_code == 404
    assert unknown.json() == {"detail": "Tour or availability rules not found"}


async def test_booking_flow(client):
    tour_id = await _create_tour(client)

    created = await _book(client, tour_id, guests=10)
    assert created.status_code == 201
    booking = created.json()
    assert booking["guests"] == 10

    full = await _book(client, tour_id, guests=1)
    assert full.status_code == 409

    availability = await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})
    assert availability.json()["fullyBookedDates"] == ["2025-09-01"]

    cancelled = await client.post(f"/bookings/{booking['id']}/cancel", json={"reason": "Weather"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "Cancelled"
    assert cancelled.json()["cancel_reason"] == "Weather"

    again = await client.post(f"/bookings/{booking['id']}/cancel")
    assert again.status_code == 200

    availability = await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})
    assert availability.json()["fullyBookedDates"] == []

    fetched = await client.get(f"/bookings/{booking['id']}")
    assert fetched.json()["status"] == "Cancelled"


async def test_booking_errors(client):
    tour_id = await _create_tour(client)

    assert (await _book(client, tour_id, guests=0)).status_code == 400
    assert (await _book(client, tour_id, day="2025-09-02")).status_code == 400
    assert (await _book(client, 9999)).status_code == 404
    assert (await _book(client, tour_id, status="Cancelled")).status_code == 422
    assert (await client.get("/bookings/9999")).status_code == 404
    assert (await client.post("/bookings/9999/cancel")).status_code == 404


async def test_bookings_cannot_be_edited_or_deleted(client):
    tour_id = await _create_tour(client)
    booking_id = (await _book(client, tour_id)).json()["id"]

    assert (await client.patch(f"/bookings/{booking_id}", json={"adult_guests": 5})).status_code == 405
    assert (await client.delete(f"/bookings/{booking_id}")).status_code == 405
    assert (await client.delete(f"/tours/{tour_id}")).status_code == 405


async def test_stop_sale_lifecycle(client):
    tour_id = await _create_tour(client)

    created = await client.post(
        "/stop_sales/",
        json={"tour_id": tour_id, "start_date": "2025-09-08", "end_date": "2025-09-10", "reason": "Festival"},
        headers={"X-Actor": "ops"},
    )
    assert created.status_code == 201
    rule = created.json()
    assert rule["option_ids"] == []

    duplicate = await client.post(
        "/stop_sales/",
        json={"tour_id": tour_id, "start_date": "2025-09-08", "end_date": "2025-09-10"},
    )
    assert duplicate.status_code == 409

    availability = await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})
    assert availability.json()["fullyBookedDates"] == ["2025-09-08", "2025-09-10"]

    booking = await _book(client, tour_id, day="2025-09-08")
    assert booking.status_code == 409
    assert booking.json() == {"detail": "Sales are stopped for the selected date"}

    assert (await client.patch(f"/stop_sales/{rule['id']}", json={})).status_code == 405
    removed = await client.delete(f"/stop_sales/{rule['id']}", headers={"X-Actor": "lead"})
    assert removed.status_code == 204
    assert (await client.delete(f"/stop_sales/{rule['id']}")).status_code == 404

    availability = await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})
    assert availability.json()["fullyBookedDates"] == []

    logs = (await client.get("/stop_sales/logs", params={"tour_id": tour_id})).json()
    assert len(logs) == 1
    assert logs[0]["status"] == "removed"
    assert logs[0]["applied_by"] == "ops"
    assert logs[0]["removed_by"] == "lead"


async def test_stop_sale_range_validation(client):
    tour_id = await _create_tour(client)
    response = await client.post(
        "/stop_sales/",
        json={"tour_id": tour_id, "start_date": "2025-09-10", "end_date": "2025-09-08"},
    )
    assert response.status_code == 422


async def test_ledger_endpoints(client):
    tour_id = await _create_tour(client)

    assert (await client.get(f"/tours/{tour_id}/ledger/2025-09-01")).status_code == 404

    await _book(client, tour_id, guests=4)
    day = (await client.get(f"/tours/{tour_id}/ledger/2025-09-01")).json()
    assert day["slots"][0]["booked"] == 4
    assert day["slots"][0]["remaining"] == 6

    lowered = await client.patch(
        f"/tours/{tour_id}/ledger/2025-09-01/slots/09:00", json={"capacity": 3}
    )
    assert lowered.status_code == 409

    raised = await client.patch(
        f"/tours/{tour_id}/ledger/2025-09-01/slots/09:00", json={"extra_capacity": 2}
    )
    assert raised.status_code == 200
    assert raised.json()["remaining"] == 8

    stopped = await client.put(
        f"/tours/{tour_id}/ledger/2025-09-03/stop-sale", json={"stop_sale": True, "reason": "Private hire"}
    )
    assert stopped.status_code == 200
    assert stopped.json()["stop_sale"] is True

    availability = (
        await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})
    ).json()
    assert availability["availableSlotsByDate"]["2025-09-01"] == [{"time": "09:00", "remaining": 8}]
    assert availability["fullyBookedDates"] == ["2025-09-03"]


async def test_template_replacement_invalidates_cache(client):
    tour_id = await _create_tour(client)
    await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})

    response = await client.put(
        f"/tours/{tour_id}/availability",
        json={"available_days": [1], "slots": [{"time": "10:00", "capacity": 4}]},
    )
    assert response.status_code == 200

    body = (await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})).json()
    assert len(body["availableSlotsByDate"]) == 5
    assert body["availableSlotsByDate"]["2025-09-01"] == [{"time": "10:00", "remaining": 4}]


async def test_options(client):
    tour_id = await _create_tour(client)

    created = await client.post(f"/tours/{tour_id}/options", json={"label": "Private", "price": 120})
    assert created.status_code == 201
    option_id = created.json()["id"]

    listed = (await client.get(f"/tours/{tour_id}/options")).json()
    assert [o["label"] for o in listed] == ["Private"]

    booking = await _book(client, tour_id, option_id=option_id)
    assert booking.status_code == 201
    assert booking.json()["option_id"] == option_id

    assert (await client.get("/tours/9999/options")).status_code == 404


def _db_down(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("disk I/O error"))


async def test_availability_database_failure_is_503(client, monkeypatch):
    tour_id = await _create_tour(client)
    monkeypatch.setattr("tourbook.services.availability.resolver.aggregate_month", _db_down)

    response = await client.get(f"/tours/{tour_id}/availability", params={"month": "2025-09"})

    assert response.status_code == 503
    assert response.json() == {"detail": "Availability temporarily unavailable"}


async def test_booking_database_failure_is_503(client, monkeypatch):
    tour_id = await _create_tour(client)
    monkeypatch.setattr("tourbook.services.availability.ledger.load_template", _db_down)

    response = await _book(client, tour_id)

    assert response.status_code == 503
    assert response.json() == {"detail": "Service temporarily unavailable"}


async def test_availability_unknown_option_is_400(client):
    tour_id = await _create_tour(client)

    response = await client.get(
        f"/tours/{tour_id}/availability", params={"month": "2025-09", "option_id": "nope"}
    )

    assert response.status_code == 400
