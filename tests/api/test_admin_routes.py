"""Tests for the admin HTTP endpoints."""

from decimal import Decimal

import pytest

from tests.factories import FINAL_POINT, FIRST_POINT, NEARBY, api_headers
from trip import TripStatus


def trip_body(**overrides) -> dict:
    body = {
        "name": "Airport run",
        "trip_date": "2025-03-10",
        "scheduled_time": "12:10",
        "trip_type": "DEPARTURE",
        "price": "1000",
        "assigned_captain_id": "captain-1",
        "points": [
            {"name": "Depot", "latitude": FIRST_POINT[0], "longitude": FIRST_POINT[1]},
            {
                "name": "Terminal",
                "latitude": FINAL_POINT[0],
                "longitude": FINAL_POINT[1],
                "is_final_point": True,
            },
        ],
    }
    body.update(overrides)
    return body


@pytest.mark.integration
class TestTripCrud:
    """Test create, read, update and delete."""

    def test_create_trip(self, test_client, factory):
        """Creates a trip from a snake_case body and returns 201."""
        factory.captain()

        response = test_client.post("/admin/trips", json=trip_body(), headers=api_headers())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Scheduled trip created successfully"
        trip = body["trip"]
        assert trip["status"] == "SCHEDULED"
        assert trip["scheduled_time"].startswith("2025-03-10T12:10:00")
        assert Decimal(trip["price"]) == Decimal("1000")
        assert [p["order"] for p in trip["points"]] == [0, 1]

    def test_create_requires_api_key(self, test_client):
        """Rejects admin writes with a wrong API key."""
        response = test_client.post(
            "/admin/trips", json=trip_body(), headers={"X-API-Key": "nope"}
        )
        assert response.status_code == 401

    def test_create_rejects_two_final_points(self, test_client, factory):
        """Returns 400 when more than one point is final."""
        factory.captain()
        points = [
            {"name": "A", "latitude": 1, "longitude": 1, "is_final_point": True},
            {"name": "B", "latitude": 2, "longitude": 2, "is_final_point": True},
        ]

        response = test_client.post(
            "/admin/trips", json=trip_body(points=points), headers=api_headers()
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Only one point can be marked as final point"

    def test_create_rejects_zero_price(self, test_client, factory):
        """Returns 400 for a non-positive price."""
        factory.captain()

        response = test_client.post(
            "/admin/trips", json=trip_body(price="0"), headers=api_headers()
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Price must be greater than 0"

    def test_create_rejects_bad_time(self, test_client, factory):
        """Returns 400 for an unparseable scheduled time."""
        factory.captain()

        response = test_client.post(
            "/admin/trips", json=trip_body(scheduled_time="noon"), headers=api_headers()
        )

        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid scheduled time format")

    def test_list_trips_paginated(self, test_client, factory):
        """Pages the trip list and reports totals."""
        factory.captain()
        for minutes in (10, 20, 30):
            factory.trip(minutes_from_now=minutes)

        response = test_client.get("/admin/trips", params={"limit": 2}, headers=api_headers())

        body = response.json()
        assert len(body["trips"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    def test_list_limit_capped(self, test_client):
        """Rejects page sizes above the maximum."""
        response = test_client.get("/admin/trips", params={"limit": 500}, headers=api_headers())
        assert response.status_code == 400

    def test_get_trip_details(self, test_client, services, factory):
        """Returns the trip with its recent activation checks."""
        factory.captain()
        trip_id = factory.trip()
        services.evaluator.check_trip_activation_conditions(trip_id, *NEARBY)

        response = test_client.get(f"/admin/trip/{trip_id}", headers=api_headers())

        body = response.json()
        assert body["trip"]["id"] == trip_id
        assert len(body["activation_checks"]) == 1
        assert body["activation_checks"][0]["activated"] is True
        assert body["ledger"] is None

    def test_update_trip(self, test_client, factory):
        """Replaces the editable fields of a scheduled trip."""
        factory.captain()
        trip_id = factory.trip()

        response = test_client.put(
            f"/admin/trip/{trip_id}", json=trip_body(name="Renamed"), headers=api_headers()
        )

        assert response.status_code == 200
        assert response.json()["trip"]["name"] == "Renamed"

    def test_delete_trip(self, test_client, factory):
        """Deletes a scheduled trip so later reads return 404."""
        factory.captain()
        trip_id = factory.trip()

        deleted = test_client.delete(f"/admin/trip/{trip_id}", headers=api_headers())
        missing = test_client.get(f"/admin/trip/{trip_id}", headers=api_headers())

        assert deleted.json() == {"success": True, "message": "Scheduled trip deleted successfully"}
        assert missing.status_code == 404

    def test_cancel_trip(self, test_client, factory):
        """Moves a never-started trip to CANCELLED."""
        factory.captain()
        trip_id = factory.trip()

        response = test_client.post(f"/admin/trip/{trip_id}/cancel", headers=api_headers())

        assert response.json()["trip"]["status"] == "CANCELLED"


@pytest.mark.integration
class TestForcedTransitions:
    def test_force_close(self, test_client, factory):
        """Force closes an active trip with the discounted deduction."""
        factory.captain()
        trip_id = factory.trip(status=TripStatus.ACTIVE, started=True, price="500")

        response = test_client.post(f"/admin/trip/{trip_id}/force-close", headers=api_headers())

        assert response.status_code == 200
        body = response.json()
        assert body["trip"]["status"] == "FORCE_CLOSED"
        assert body["settlement"]["rule"] == "FORCE_CLOSED_DEDUCTION"
        assert Decimal(body["settlement"]["net_amount"]) == Decimal("-400")
        assert factory.get_captain("captain-1").scheduled_trip_balance == Decimal("-400.00")

    def test_force_close_scheduled_trip(self, test_client, factory):
        """Refuses to force close a trip that is not active."""
        factory.captain()
        trip_id = factory.trip()

        response = test_client.post(f"/admin/trip/{trip_id}/force-close", headers=api_headers())

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Only active trips can be closed. Current status: SCHEDULED"
        )

    def test_admin_emergency_terminate(self, test_client, factory):
        """Terminates an active trip on behalf of an admin."""
        factory.captain()
        trip_id = factory.trip(status=TripStatus.ACTIVE, started=True)

        response = test_client.post(
            f"/admin/trip/{trip_id}/emergency-terminate", headers=api_headers()
        )

        trip = response.json()["trip"]
        assert trip["status"] == "EMERGENCY_TERMINATED"
        assert trip["emergency_terminated_by"] == "admin"

    def test_reconcile(self, test_client, factory):
        """Settles completed trips that have no ledger row."""
        factory.captain()
        factory.trip(status=TripStatus.COMPLETED, price="100")

        response = test_client.post("/admin/finance/reconcile", headers=api_headers())

        assert response.json() == {"success": True, "checked": 1, "settled": 1, "failed": []}


@pytest.mark.integration
class TestCaptains:
    def test_upsert_and_notify(self, test_client, push):
        """Seeds a captain and sends them a push notification."""
        created = test_client.post(
            "/admin/captains",
            json={
                "id": "captain-9",
                "name": "Hana",
                "status": "active",
                "notification_token": "ExponentPushToken[xyz]",
            },
            headers=api_headers(),
        )
        assert created.status_code == 200
        captain = created.json()["captain"]
        assert captain["id"] == "captain-9"
        assert Decimal(captain["total_earning"]) == Decimal("0")

        notified = test_client.post(
            "/admin/captains/captain-9/notify",
            json={"title": "Heads up", "body": "New trips tomorrow"},
            headers=api_headers(),
        )
        assert notified.json() == {"success": True, "message": "Notification sent successfully"}
        assert push.messages[0]["to"] == "ExponentPushToken[xyz]"

    def test_notify_unknown_captain(self, test_client):
        """Reports an unknown captain instead of sending."""
        response = test_client.post(
            "/admin/captains/ghost/notify",
            json={"title": "Hi", "body": "There"},
            headers=api_headers(),
        )
        assert response.json() == {"success": False, "message": "Captain not found"}
