from datetime import UTC, datetime, timedelta

import pytest

from tests.factories import NEARBY, PICKUP


@pytest.fixture
def registration_json(rider_factory):
    return rider_factory.registration().model_dump(mode="json")


@pytest.mark.unit
class TestRiderRoutes:
    def test_register_and_activate(self, client, auth_headers, registration_json):
        created = client.post("/riders", json=registration_json, headers=auth_headers)
        assert created.status_code == 201
        rider_id = created.json()["id"]
        assert created.json()["status"] == "pending"

        active = client.put(
            f"/riders/{rider_id}/status", json={"status": "active"}, headers=auth_headers
        )
        online = client.post(
            f"/riders/{rider_id}/online",
            json={"is_online": True, "lat": NEARBY.lat, "lng": NEARBY.lng},
            headers=auth_headers,
        )

        assert active.json()["status"] == "active"
        assert online.json()["is_online"] is True
        assert online.json()["lat"] == NEARBY.lat

    def test_invalid_phone_rejected(self, client, auth_headers, registration_json):
        registration_json["phone"] = "call me"

        response = client.post("/riders", json=registration_json, headers=auth_headers)

        assert response.status_code == 422

    def test_location_heartbeat(self, client, auth_headers, directory, rider_factory):
        rider = rider_factory.available_rider(directory, NEARBY)
        body = {"lat": NEARBY.lat, "lng": NEARBY.lng}

        unchanged = client.post(f"/riders/{rider.id}/location", json=body, headers=auth_headers)
        moved = client.post(
            f"/riders/{rider.id}/location", json={"lat": 28.62, "lng": 77.21}, headers=auth_headers
        )

        assert unchanged.json() == {"rider_id": rider.id, "updated": False}
        assert moved.json() == {"rider_id": rider.id, "updated": True}

    def test_location_out_of_range(self, client, auth_headers, directory, rider_factory):
        rider = rider_factory.available_rider(directory, NEARBY)

        response = client.post(
            f"/riders/{rider.id}/location", json={"lat": 28.6, "lng": 181}, headers=auth_headers
        )

        assert response.status_code == 422

    def test_unknown_rider(self, client, auth_headers):
        response = client.get("/riders/ghost", headers=auth_headers)

        assert response.status_code == 404

    def test_nearby_riders(self, client, auth_headers, directory, rider_factory):
        rider = rider_factory.available_rider(directory, NEARBY)

        response = client.get(
            "/riders/nearby",
            params={"lat": PICKUP.lat, "lng": PICKUP.lng, "radius_km": 5},
            headers=auth_headers,
        )

        assert response.status_code == 200
        [nearby] = response.json()
        assert nearby["rider_id"] == rider.id
        assert nearby["distance_km"] == pytest.approx(2.10, abs=0.01)

    def test_nearby_empty(self, client, auth_headers):
        response = client.get(
            "/riders/nearby", params={"lat": PICKUP.lat, "lng": PICKUP.lng}, headers=auth_headers
        )

        assert response.json() == []


@pytest.mark.unit
class TestEarningsRoutes:
    def test_adjustment_and_summary(self, client, auth_headers, directory, rider_factory):
        rider = rider_factory.available_rider(directory, NEARBY)

        posted = client.post(
            f"/riders/{rider.id}/earnings",
            json={"amount": "30.00", "earning_type": "tip", "description": "Festival tip"},
            headers=auth_headers,
        )
        summary = client.get(f"/riders/{rider.id}/earnings/summary", headers=auth_headers)

        assert posted.status_code == 201
        assert summary.json()["total"] == "30.00"
        assert summary.json()["entry_count"] == 1

        payout = client.post(
            "/earnings/payouts",
            json={"entry_ids": [posted.json()["id"]], "batch_id": "batch-7"},
            headers=auth_headers,
        )
        assert payout.json() == {"batch_id": "batch-7", "requested": 1, "marked": 1}

    def test_bad_period(self, client, auth_headers, directory, rider_factory):
        rider = rider_factory.available_rider(directory, NEARBY)

        response = client.get(
            f"/riders/{rider.id}/earnings", params={"period": "2026-13"}, headers=auth_headers
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


@pytest.mark.unit
class TestBookingRoutes:
    def _booking_json(self, hours_ahead):
        return {
            "customer_id": "cust-3",
            "services": [{"name": "Wash and iron", "unit_price": "80.00", "quantity": 2}],
            "scheduled_at": (datetime.now(UTC) + timedelta(hours=hours_ahead)).isoformat(),
            "address": "22 Hauz Khas Village, New Delhi",
        }

    def test_create_and_cancel(self, client, auth_headers):
        created = client.post("/bookings", json=self._booking_json(24), headers=auth_headers)
        assert created.status_code == 201
        assert created.json()["total_amount"] == "160.00"

        cancelled = client.post(
            f"/bookings/{created.json()['id']}/cancel",
            json={"reason": "Plans changed"},
            headers=auth_headers,
        )

        assert cancelled.json()["status"] == "cancelled"

    def test_cancel_window_closed(self, client, auth_headers):
        created = client.post("/bookings", json=self._booking_json(1), headers=auth_headers)

        response = client.post(
            f"/bookings/{created.json()['id']}/cancel", json={}, headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "cancel_window_closed"

    def test_edit_window_closed(self, client, auth_headers):
        created = client.post("/bookings", json=self._booking_json(3), headers=auth_headers)

        response = client.patch(
            f"/bookings/{created.json()['id']}",
            json={"instructions": "Leave with guard"},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "edit_window_closed"

    def test_list_for_customer(self, client, auth_headers):
        first = client.post("/bookings", json=self._booking_json(24), headers=auth_headers).json()
        second = client.post("/bookings", json=self._booking_json(48), headers=auth_headers).json()
        other = self._booking_json(24) | {"customer_id": "cust-9"}
        client.post("/bookings", json=other, headers=auth_headers)

        response = client.get("/bookings", params={"customer_id": "cust-3"}, headers=auth_headers)

        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == [second["id"], first["id"]]

    def test_list_requires_customer(self, client, auth_headers):
        assert client.get("/bookings", headers=auth_headers).status_code == 422
