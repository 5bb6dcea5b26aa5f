"""
Ride Match Exceptions

Error taxonomy for the matching core. Scoring code catches these at
per-candidate boundaries; only configuration and lifecycle errors reach
callers.
"""


class RideMatchError(Exception):
    """Base class for all matching errors."""


class RoutingUnavailable(RideMatchError):
    """Routing/geocoding collaborator failed (network, quota, bad response)."""


class GeocodeFailed(RideMatchError):
    """Reverse geocode or place lookup returned nothing usable."""


class InvalidLocationData(RideMatchError):
    """A trip is missing coordinates needed for route analysis."""


class DuplicateMatch(RideMatchError):
    """A match row already exists for the (trip_id, matched_trip_id) pair."""

    def __init__(self, trip_id: str, matched_trip_id: str):
        super().__init__(f"Match already exists for {trip_id} -> {matched_trip_id}")
        self.trip_id = trip_id
        self.matched_trip_id = matched_trip_id


class InvalidCriteria(RideMatchError):
    """Scoring configuration or matching criteria failed validation."""


class MatchNotFound(RideMatchError):
    """No match row with the given id."""

    def __init__(self, match_id: str):
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id


class InvalidStatusTransition(RideMatchError):
    """Requested status change would move a match backwards."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move match from {current} to {target}")
        self.current = current
        self.target = target
