"""
Match Models

Defines the persisted match schema, the transient compatibility analysis
and the lifecycle events emitted by the orchestrator.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ridematch.models.location import LocationPoint
from ridematch.models.meeting_point import MeetingPoint


class MatchType(str, Enum):
    """How two routes relate."""

    EXACT_ROUTE = "exact_route"
    PARTIAL_OVERLAP = "partial_overlap"
    DETOUR_PICKUP = "detour_pickup"
    DETOUR_DROPOFF = "detour_dropoff"


class MatchStatus(str, Enum):
    """Status of a match."""

    SUGGESTED = "SUGGESTED"  # Created by the engine
    VIEWED = "VIEWED"  # Seen by the trip owner
    CONTACTED = "CONTACTED"  # Owner reached out
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"  # 30 days passed


TERMINAL_STATUSES = frozenset(
    {MatchStatus.ACCEPTED, MatchStatus.DECLINED, MatchStatus.EXPIRED}
)

# Forward position in the lifecycle; terminal states share the last rank
STATUS_RANK = {
    MatchStatus.SUGGESTED: 0,
    MatchStatus.VIEWED: 1,
    MatchStatus.CONTACTED: 2,
    MatchStatus.ACCEPTED: 3,
    MatchStatus.DECLINED: 3,
    MatchStatus.EXPIRED: 3,
}


class RouteOverlapResult(BaseModel):
    """Output of the route overlap analysis."""

    overlap_percentage: float = Field(..., ge=0, le=1)
    shared_distance_km: float = Field(default=0.0, ge=0)
    total_distance_km: float = Field(default=0.0, ge=0)
    deviation_distance_km: float = Field(default=0.0, ge=0)
    pickup_points: List[LocationPoint] = Field(default_factory=list)
    dropoff_points: List[LocationPoint] = Field(default_factory=list)
    used_fallback: bool = False


class DetourMetrics(BaseModel):
    detour_distance_km: float = Field(..., ge=0)
    detour_time_min: float = Field(..., ge=0)
    used_fallback: bool = False


class CompatibilityAnalysis(BaseModel):
    """
    Compatibility between a source trip and a candidate trip.

    Value object, never persisted directly. All scores are in [0, 1].
    `degraded` is set when any routing call fell back to heuristics.
    """

    trip_id: Optional[str] = None
    matched_trip_id: str
    route_score: float = Field(..., ge=0, le=1)
    time_score: float = Field(..., ge=0, le=1)
    preferences_score: float = Field(..., ge=0, le=1)
    price_score: float = Field(..., ge=0, le=1)
    overall_score: float = Field(..., ge=0, le=1)
    match_type: MatchType
    detour_distance_km: float = Field(default=0.0, ge=0)
    detour_time_min: float = Field(default=0.0, ge=0)
    estimated_savings: float = Field(default=0.0, ge=0)
    shared_distance_km: float = Field(default=0.0, ge=0)
    time_difference_min: float = Field(default=0.0, ge=0)
    degraded: bool = False

    class Config:
        use_enum_values = True


class CreateMatchData(BaseModel):
    """Data required to persist a new match."""

    trip_id: str
    matched_trip_id: str
    trip_user_id: Optional[str] = Field(None, description="Owner of trip_id, when known")
    matched_trip_user_id: Optional[str] = Field(
        None, description="Owner of matched_trip_id, when known"
    )
    compatibility_score: float = Field(..., ge=0, le=1)
    match_type: MatchType
    detour_distance_km: float = Field(default=0.0, ge=0)
    detour_time_min: float = Field(default=0.0, ge=0)
    estimated_savings: float = Field(default=0.0, ge=0)
    shared_distance_km: float = Field(default=0.0, ge=0)
    time_compatibility_score: float = Field(default=0.0, ge=0, le=1)
    suggested_pickup_point: Optional[MeetingPoint] = None
    suggested_dropoff_point: Optional[MeetingPoint] = None

    class Config:
        use_enum_values = True

    @classmethod
    def from_analysis(cls, trip_id: str, analysis: CompatibilityAnalysis) -> "CreateMatchData":
        return cls(
            trip_id=trip_id,
            matched_trip_id=analysis.matched_trip_id,
            compatibility_score=analysis.overall_score,
            match_type=analysis.match_type,
            detour_distance_km=analysis.detour_distance_km,
            detour_time_min=analysis.detour_time_min,
            estimated_savings=analysis.estimated_savings,
            shared_distance_km=analysis.shared_distance_km,
            time_compatibility_score=analysis.time_score,
        )


class Match(BaseModel):
    """
    Match model for MongoDB.

    Fields:
    - match_id: Unique UUID for the match
    - trip_id / matched_trip_id: Ordered pair, unique across the collection
    - compatibility_score: Overall score at creation time
    - match_type: Route relationship label
    - detour_*: Detour the pairing costs
    - suggested_*_point: Meeting point suggestions, filled after acceptance
    - status: Lifecycle status
    - viewed_at / contacted_at / responded_at: Lifecycle stamps
    - expires_at: 30 days after creation
    """

    match_id: str = Field(..., description="Unique match ID")
    trip_id: str = Field(..., description="Trip the match was found for")
    matched_trip_id: str = Field(..., description="Matched candidate trip")
    compatibility_score: float = Field(..., ge=0, le=1)
    match_type: MatchType
    detour_distance_km: float = Field(default=0.0, ge=0)
    detour_time_min: float = Field(default=0.0, ge=0)
    estimated_savings: float = Field(default=0.0, ge=0)
    shared_distance_km: float = Field(default=0.0, ge=0)
    time_compatibility_score: float = Field(default=0.0, ge=0, le=1)
    suggested_pickup_point: Optional[MeetingPoint] = None
    suggested_dropoff_point: Optional[MeetingPoint] = None
    status: MatchStatus = Field(default=MatchStatus.SUGGESTED)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    viewed_at: Optional[datetime] = None
    contacted_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    expires_at: datetime = Field(..., description="Match expiry time")

    class Config:
        use_enum_values = True


class MatchCreateResult(BaseModel):
    """Outcome of create_match. A duplicate pair is not an error."""

    match: Optional[Match] = None
    created: bool = False
    already_exists: bool = False
    reciprocal_created: bool = False


class MatchFilters(BaseModel):
    min_compatibility_score: Optional[float] = Field(None, ge=0, le=1)
    match_type: Optional[MatchType] = None
    status: Optional[MatchStatus] = None

    class Config:
        use_enum_values = True


class MatchStats(BaseModel):
    total: int = 0
    viewed: int = 0
    contacted: int = 0
    accepted: int = 0
    avg_compatibility_score: float = 0.0


class MatchEventType(str, Enum):
    MATCH_CREATED = "match_created"
    MATCH_STATUS_CHANGED = "match_status_changed"


class MatchEvent(BaseModel):
    """Domain event for downstream notification consumers."""

    event_id: str
    event_type: MatchEventType
    match_id: str
    trip_id: str
    matched_trip_id: str
    status: MatchStatus
    previous_status: Optional[MatchStatus] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        use_enum_values = True
