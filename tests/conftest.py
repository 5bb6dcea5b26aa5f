"""
Shared fixtures.

In-memory stand-ins for the routing collaborator and the match store.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from ridematch.exceptions import DuplicateMatch, GeocodeFailed, RoutingUnavailable
from ridematch.models.location import (
    DistanceResult,
    GeocodeResult,
    LocationPoint,
    PlaceResult,
    RouteGeometry,
)
from ridematch.models.match import Match, MatchStats, MatchStatus, TERMINAL_STATUSES
from ridematch.models.trip import TripRequest
from ridematch.services.event_service import QueueEventSink
from ridematch.services.match_service import MatchOrchestrator
from ridematch.services.routing_service import RoutingService
from ridematch.utils.geo_utils import distance_m


DRIVING_METERS_PER_SECOND = 30_000 / 3600


def straight_route(origin: LocationPoint, destination: LocationPoint, steps: int = 10) -> RouteGeometry:
    points = [
        LocationPoint(
            lat=origin.lat + (destination.lat - origin.lat) * i / steps,
            lng=origin.lng + (destination.lng - origin.lng) * i / steps,
        )
        for i in range(steps + 1)
    ]
    meters = distance_m(origin.as_tuple(), destination.as_tuple())
    return RouteGeometry(
        points=points, distance_m=meters, duration_s=meters / DRIVING_METERS_PER_SECOND
    )


class FakeRoutingService(RoutingService):
    """Straight-line routing with switchable failures and call counters."""

    def __init__(self):
        self.routes: Dict[Any, RouteGeometry] = {}
        self.pois: List[PlaceResult] = []
        self.geocode = GeocodeResult(formatted_address="1 Test Street")
        self.fail_route = False
        self.fail_distance = False
        self.fail_geocode = False
        self.geocode_not_found = False
        self.calls: Dict[str, int] = {"route": 0, "distance": 0, "geocode": 0, "nearby": 0}

    async def route(self, origin, destination, mode="driving"):
        self.calls["route"] += 1
        if self.fail_route:
            raise RoutingUnavailable("route down")
        key = (origin.as_tuple(), destination.as_tuple())
        return self.routes.get(key) or straight_route(origin, destination)

    async def distance(self, origin, destination, mode="driving"):
        self.calls["distance"] += 1
        if self.fail_distance:
            raise RoutingUnavailable("distance down")
        meters = distance_m(origin.as_tuple(), destination.as_tuple())
        return DistanceResult(distance_m=meters, duration_s=meters / DRIVING_METERS_PER_SECOND)

    async def reverse_geocode(self, point):
        self.calls["geocode"] += 1
        if self.fail_geocode:
            raise RoutingUnavailable("geocode down")
        if self.geocode_not_found:
            raise GeocodeFailed("no address")
        return self.geocode

    async def nearby_search(self, point, radius_m, category="establishment"):
        self.calls["nearby"] += 1
        return list(self.pois)


def _field_matches(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict):
        for op, operand in condition.items():
            if op == "$in" and value not in operand:
                return False
            if op == "$nin" and value in operand:
                return False
            if op == "$gt" and not (value is not None and value > operand):
                return False
            if op == "$gte" and not (value is not None and value >= operand):
                return False
            if op == "$lt" and not (value is not None and value < operand):
                return False
        return True
    return value == condition


def _doc_matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    return all(_field_matches(doc.get(k), v) for k, v in query.items())


class FakeMatchRepository:
    """Dict-backed MatchRepository with the unique pair constraint."""

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.fail_inserts_for: set = set()

    async def insert(self, match: Match) -> Match:
        if match.trip_id in self.fail_inserts_for:
            raise RuntimeError("store unavailable")
        for row in self.rows.values():
            if row["trip_id"] == match.trip_id and row["matched_trip_id"] == match.matched_trip_id:
                raise DuplicateMatch(match.trip_id, match.matched_trip_id)
        self.rows[match.match_id] = match.model_dump()
        return match

    async def get(self, match_id: str) -> Optional[Match]:
        row = self.rows.get(match_id)
        return Match.model_validate(row) if row else None

    async def get_by_pair(self, trip_id: str, matched_trip_id: str) -> Optional[Match]:
        for row in self.rows.values():
            if row["trip_id"] == trip_id and row["matched_trip_id"] == matched_trip_id:
                return Match.model_validate(row)
        return None

    async def update_fields(
        self, match_id: str, fields: Dict[str, Any], expected_status: Optional[str] = None
    ) -> Optional[Match]:
        row = self.rows.get(match_id)
        if row is None:
            return None
        if expected_status is not None and row["status"] != expected_status:
            return None
        row.update(fields)
        return Match.model_validate(row)

    async def find(self, query: Dict[str, Any], limit: int = 20, offset: int = 0) -> List[Match]:
        rows = [r for r in self.rows.values() if _doc_matches(r, query)]
        rows.sort(key=lambda r: r["compatibility_score"], reverse=True)
        return [Match.model_validate(r) for r in rows[offset:offset + limit]]

    async def count(self, query: Dict[str, Any]) -> int:
        return sum(1 for r in self.rows.values() if _doc_matches(r, query))

    async def delete(self, match_id: str) -> bool:
        return self.rows.pop(match_id, None) is not None

    async def expire_before(self, now: datetime) -> int:
        terminal = {s.value for s in TERMINAL_STATUSES}
        count = 0
        for row in self.rows.values():
            if row["expires_at"] < now and row["status"] not in terminal:
                row["status"] = MatchStatus.EXPIRED.value
                count += 1
        return count

    async def delete_expired_before(self, cutoff: datetime) -> int:
        doomed = [
            match_id for match_id, row in self.rows.items()
            if row["status"] == MatchStatus.EXPIRED.value and row["expires_at"] < cutoff
        ]
        for match_id in doomed:
            del self.rows[match_id]
        return len(doomed)

    async def stats(self, query: Dict[str, Any]) -> MatchStats:
        rows = [r for r in self.rows.values() if _doc_matches(r, query)]
        if not rows:
            return MatchStats()
        return MatchStats(
            total=len(rows),
            viewed=sum(1 for r in rows if r.get("viewed_at")),
            contacted=sum(1 for r in rows if r.get("contacted_at")),
            accepted=sum(1 for r in rows if r["status"] == MatchStatus.ACCEPTED.value),
            avg_compatibility_score=sum(r["compatibility_score"] for r in rows) / len(rows),
        )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def routing():
    return FakeRoutingService()


@pytest.fixture
def repository():
    return FakeMatchRepository()


@pytest.fixture
def events():
    return QueueEventSink()


@pytest.fixture
def orchestrator(routing, repository, events):
    return MatchOrchestrator(
        routing,
        repository=repository,
        event_sink=events,
        match_expiry_days=30,
        deadline_seconds=5,
    )


@pytest.fixture
def make_trip():
    """Factory for trips; origin/destination given as (lat, lng) tuples."""

    def _make(
        trip_id: str,
        origin=(40.7128, -74.0060),
        destination=(40.7589, -73.9851),
        departure=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc),
        user_id: Optional[str] = None,
        **kwargs,
    ) -> TripRequest:
        return TripRequest(
            id=trip_id,
            user_id=user_id or f"user-{trip_id}",
            origin=LocationPoint.from_lat_lng(*origin) if origin else None,
            destination=LocationPoint.from_lat_lng(*destination) if destination else None,
            departure_time=departure,
            **kwargs,
        )

    return _make
