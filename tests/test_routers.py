"""
Tests for the HTTP surface

Endpoints run against the in-memory orchestrator; the app lifespan (Mongo,
Redis, scheduler) is not started.
"""

import pytest
from fastapi.testclient import TestClient

from ridematch.main import app


TRIP_A = {
    "id": "a",
    "user_id": "alice",
    "origin": {"lat": 40.7128, "lng": -74.0060},
    "destination": {"lat": 40.7589, "lng": -73.9851},
    "departure_time": "2024-06-01T10:00:00Z",
}
TRIP_B = {
    "id": "b",
    "user_id": "bob",
    "origin": {"lat": 40.7150, "lng": -74.0080},
    "destination": {"lat": 40.7600, "lng": -73.9800},
    "departure_time": "2024-06-01T10:15:00Z",
}
NEW_MATCH = {
    "trip_id": "a",
    "matched_trip_id": "b",
    "trip_user_id": "alice",
    "matched_trip_user_id": "bob",
    "compatibility_score": 0.9,
    "match_type": "exact_route",
}


@pytest.fixture
def client(orchestrator):
    app.state.orchestrator = orchestrator
    yield TestClient(app)
    app.state.orchestrator = None


class TestMatchesRouter:
    """Tests for /api/v1/matches."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_compatible_trips(self, client):
        response = client.post(
            "/api/v1/matches/compatible",
            json={"source": TRIP_A, "candidates": [TRIP_B]},
        )

        assert response.status_code == 200
        results = response.json()
        assert len(results) == 1
        assert results[0]["matched_trip_id"] == "b"
        assert results[0]["match_type"] == "exact_route"

    def test_analyze(self, client):
        response = client.post(
            "/api/v1/matches/analyze",
            json={"source": TRIP_A, "candidate": TRIP_B},
        )

        assert response.status_code == 200
        assert response.json()["overall_score"] > 0.7

    def test_invalid_criteria_is_unprocessable(self, client):
        response = client.post(
            "/api/v1/matches/compatible",
            json={
                "source": TRIP_A,
                "candidates": [TRIP_B],
                "criteria": {"price_min": 50, "price_max": 10},
            },
        )

        assert response.status_code == 422

    def test_create_and_fetch_match(self, client):
        created = client.post("/api/v1/matches", json=NEW_MATCH)

        assert created.status_code == 201
        body = created.json()
        assert body["created"] is True
        match_id = body["match"]["match_id"]

        fetched = client.get(f"/api/v1/matches/{match_id}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "SUGGESTED"

        listed = client.get("/api/v1/matches/trip/a")
        assert [m["match_id"] for m in listed.json()] == [match_id]

    def test_duplicate_create_reports_existing(self, client):
        client.post("/api/v1/matches", json=NEW_MATCH)

        response = client.post("/api/v1/matches", json=NEW_MATCH)

        assert response.json()["already_exists"] is True

    def test_same_owner_is_unprocessable(self, client):
        response = client.post(
            "/api/v1/matches",
            json={**NEW_MATCH, "trip_user_id": "alice", "matched_trip_user_id": "alice"},
        )

        assert response.status_code == 422

    def test_create_requires_owner_ids(self, client, repository):
        payload = {k: v for k, v in NEW_MATCH.items() if k != "matched_trip_user_id"}

        response = client.post("/api/v1/matches", json=payload)

        assert response.status_code == 422
        assert repository.rows == {}

    def test_status_transitions(self, client):
        match_id = client.post("/api/v1/matches", json=NEW_MATCH).json()["match"]["match_id"]

        forward = client.patch(f"/api/v1/matches/{match_id}/status", json={"status": "CONTACTED"})
        backward = client.patch(f"/api/v1/matches/{match_id}/status", json={"status": "VIEWED"})

        assert forward.status_code == 200
        assert forward.json()["contacted_at"] is not None
        assert backward.status_code == 409
        assert backward.json()["current_status"] == "CONTACTED"

    def test_unknown_match_is_not_found(self, client):
        assert client.get("/api/v1/matches/missing").status_code == 404
        response = client.patch("/api/v1/matches/missing/status", json={"status": "VIEWED"})
        assert response.status_code == 404

    def test_engine_not_ready(self):
        app.state.orchestrator = None

        response = TestClient(app).get("/api/v1/matches/anything")

        assert response.status_code == 503


class TestMeetingPointsRouter:
    """Tests for /api/v1/meeting-points."""

    def test_between_locations(self, client):
        response = client.post(
            "/api/v1/meeting-points/between",
            json={
                "location_a": TRIP_A["origin"],
                "location_b": TRIP_A["destination"],
            },
        )

        assert response.status_code == 200
        points = response.json()
        assert 1 <= len(points) <= 5
        assert all(p["overall_score"] > 0.3 for p in points)

    def test_along_route(self, client):
        route = {
            "points": [TRIP_A["origin"], TRIP_B["origin"], TRIP_A["destination"]],
            "distance_m": 5400,
        }

        response = client.post(
            "/api/v1/meeting-points",
            json={"route": route, "passenger_location": TRIP_A["origin"]},
        )

        assert response.status_code == 200
        assert len(response.json()) >= 1
