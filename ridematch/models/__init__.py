"""Ride Match Models Package"""

from ridematch.models.location import (
    LocationPoint,
    RouteGeometry,
    DistanceResult,
    GeocodeResult,
    AddressComponent,
    PlaceResult,
)
from ridematch.models.trip import (
    TripRequest,
    TripStatus,
    UserPreferences,
    PreferenceChoice,
    ConversationLevel,
)
from ridematch.models.criteria import MatchingCriteria, ScoringConfig, ScoringWeights
from ridematch.models.meeting_point import MeetingPoint, MeetingPointAnalysis, MeetingPointOptions
from ridematch.models.match import (
    Match,
    MatchType,
    MatchStatus,
    MatchEvent,
    MatchEventType,
    MatchFilters,
    MatchStats,
    MatchCreateResult,
    CreateMatchData,
    CompatibilityAnalysis,
    RouteOverlapResult,
    DetourMetrics,
)

__all__ = [
    "LocationPoint", "RouteGeometry", "DistanceResult", "GeocodeResult",
    "AddressComponent", "PlaceResult",
    "TripRequest", "TripStatus", "UserPreferences", "PreferenceChoice", "ConversationLevel",
    "MatchingCriteria", "ScoringConfig", "ScoringWeights",
    "MeetingPoint", "MeetingPointAnalysis", "MeetingPointOptions",
    "Match", "MatchType", "MatchStatus", "MatchEvent", "MatchEventType",
    "MatchFilters", "MatchStats", "MatchCreateResult", "CreateMatchData",
    "CompatibilityAnalysis", "RouteOverlapResult", "DetourMetrics",
]
