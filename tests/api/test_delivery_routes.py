import pytest

from tests.factories import NEARBY


@pytest.fixture
def delivery_json(delivery_factory):
    return delivery_factory.payload().model_dump(mode="json")


@pytest.mark.unit
class TestAuth:
    def test_health_is_public(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_missing_key_rejected(self, client, delivery_json):
        response = client.post("/deliveries", json=delivery_json)

        assert response.status_code == 422

    def test_wrong_key_rejected(self, client, delivery_json):
        response = client.post("/deliveries", json=delivery_json, headers={"X-API-Key": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    def test_validate_endpoint(self, client, auth_headers):
        assert client.get("/auth/validate", headers=auth_headers).json() == {
            "status": "authenticated"
        }

    def test_security_headers(self, client):
        response = client.get("/health")

        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "default-src 'none'" in response.headers["Content-Security-Policy"]


@pytest.mark.unit
class TestCreateAndFetch:
    def test_create_returns_tracking_number(self, client, auth_headers, delivery_json):
        response = client.post("/deliveries", json=delivery_json, headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["tracking_number"].startswith("TRK")

        fetched = client.get(f"/deliveries/{body['id']}", headers=auth_headers).json()
        assert fetched["status"] == "pending"
        assert fetched["total_amount"] == "140.00"
        assert fetched["rider_earnings"] == "119.00"
        assert fetched["pickup_lat"] == delivery_json["pickup_lat"]

    def test_lookup_by_tracking_number(self, client, auth_headers, delivery_json):
        created = client.post("/deliveries", json=delivery_json, headers=auth_headers).json()

        response = client.get(
            f"/deliveries/tracking/{created['tracking_number']}", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_invalid_coordinates(self, client, auth_headers, delivery_json):
        delivery_json["pickup_lat"] = 95.0

        response = client.post("/deliveries", json=delivery_json, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_negative_fee_rejected_by_schema(self, client, auth_headers, delivery_json):
        delivery_json["base_fee"] = "-5.00"

        response = client.post("/deliveries", json=delivery_json, headers=auth_headers)

        assert response.status_code == 422

    def test_unknown_delivery(self, client, auth_headers):
        response = client.get("/deliveries/does-not-exist", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"


@pytest.mark.unit
@pytest.mark.critical
class TestAssignmentRoutes:
    def test_no_rider_available(self, client, auth_headers, delivery_json):
        created = client.post("/deliveries", json=delivery_json, headers=auth_headers).json()

        response = client.post(f"/deliveries/{created['id']}/assign", headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["code"] == "no_rider_available"
        assert response.json()["detail"] == "No riders nearby"
        fetched = client.get(f"/deliveries/{created['id']}", headers=auth_headers).json()
        assert fetched["status"] == "pending"

    def test_assign_then_deliver(
        self, client, auth_headers, delivery_json, directory, rider_factory
    ):
        rider = rider_factory.available_rider(directory, NEARBY)
        created = client.post("/deliveries", json=delivery_json, headers=auth_headers).json()

        assigned = client.post(
            f"/deliveries/{created['id']}/assign",
            json={"max_radius_km": 5},
            headers=auth_headers,
        )
        assert assigned.status_code == 200
        assert assigned.json()["rider_id"] == rider.id
        assert assigned.json()["distance_km"] == pytest.approx(2.10, abs=0.01)

        for step in ("picked_up", "in_transit", "delivered"):
            response = client.post(
                f"/deliveries/{created['id']}/status", json={"status": step}, headers=auth_headers
            )
            assert response.status_code == 200

        rider_body = client.get(f"/riders/{rider.id}", headers=auth_headers).json()
        assert rider_body["completed_deliveries"] == 1
        assert rider_body["earnings_total"] == "119.00"
        assert rider_body["active_delivery_id"] is None

    def test_second_assign_conflicts(
        self, client, auth_headers, delivery_json, directory, rider_factory
    ):
        rider_factory.available_rider(directory, NEARBY)
        created = client.post("/deliveries", json=delivery_json, headers=auth_headers).json()
        client.post(f"/deliveries/{created['id']}/assign", headers=auth_headers)

        response = client.post(f"/deliveries/{created['id']}/assign", headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["code"] == "already_assigned"

    def test_skipping_a_step_conflicts(
        self, client, auth_headers, delivery_json, directory, rider_factory
    ):
        rider_factory.available_rider(directory, NEARBY)
        created = client.post("/deliveries", json=delivery_json, headers=auth_headers).json()
        client.post(f"/deliveries/{created['id']}/assign", headers=auth_headers)

        response = client.post(
            f"/deliveries/{created['id']}/status",
            json={"status": "delivered"},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["code"] == "invalid_transition"

    def test_cancel_requires_reason(self, client, auth_headers, delivery_json):
        created = client.post("/deliveries", json=delivery_json, headers=auth_headers).json()

        missing = client.post(
            f"/deliveries/{created['id']}/cancel", json={"reason": ""}, headers=auth_headers
        )
        cancelled = client.post(
            f"/deliveries/{created['id']}/cancel",
            json={"reason": "Customer not home"},
            headers=auth_headers,
        )

        assert missing.status_code == 422
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["cancellation_reason"] == "Customer not home"


@pytest.mark.unit
class TestListRoutes:
    def test_list_for_customer(self, client, auth_headers, delivery_factory):
        mine = delivery_factory.payload(customer_id="cust-42").model_dump(mode="json")
        theirs = delivery_factory.payload().model_dump(mode="json")
        created = client.post("/deliveries", json=mine, headers=auth_headers).json()
        client.post("/deliveries", json=theirs, headers=auth_headers)

        response = client.get(
            "/deliveries", params={"customer_id": "cust-42"}, headers=auth_headers
        )

        assert response.status_code == 200
        assert [d["id"] for d in response.json()] == [created["id"]]

    def test_unknown_customer_is_empty(self, client, auth_headers):
        response = client.get("/deliveries", params={"customer_id": "nobody"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == []

    def test_list_requires_customer(self, client, auth_headers):
        assert client.get("/deliveries", headers=auth_headers).status_code == 422

    def test_rider_deliveries(
        self, client, auth_headers, delivery_json, directory, rider_factory
    ):
        rider = rider_factory.available_rider(directory, NEARBY)
        created = client.post("/deliveries", json=delivery_json, headers=auth_headers).json()
        client.post("/deliveries", json=delivery_json, headers=auth_headers)
        client.post(f"/deliveries/{created['id']}/assign", headers=auth_headers)

        response = client.get(f"/riders/{rider.id}/deliveries", headers=auth_headers)

        assert response.status_code == 200
        [assigned] = response.json()
        assert assigned["id"] == created["id"]
        assert assigned["rider_id"] == rider.id
        assert assigned["status"] == "assigned"

    def test_unknown_rider_deliveries(self, client, auth_headers):
        response = client.get("/riders/ghost/deliveries", headers=auth_headers)

        assert response.status_code == 404
