"""Meeting Point Models - Rendezvous candidates and their scores."""

from typing import List

from pydantic import BaseModel, Field

from ridematch.models.location import LocationPoint, PlaceResult


DEFAULT_PREFERRED_CATEGORIES = ["transit_station", "shopping_mall", "gas_station", "parking"]
DEFAULT_AVOID_CATEGORIES = ["cemetery", "hospital", "funeral_home"]


class MeetingPoint(BaseModel):
    """A proposed pickup or handoff spot."""

    address: str = Field(..., description="Formatted address")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    walking_distance_m: float = Field(default=0.0, ge=0)
    accessibility: str = Field(default="unknown", description="high, medium, low or unknown")

    def as_location(self) -> LocationPoint:
        return LocationPoint(address=self.address, lat=self.lat, lng=self.lng)


class MeetingPointAnalysis(BaseModel):
    """Scored meeting point. All scores are in [0, 1]."""

    point: MeetingPoint
    safety_score: float = Field(..., ge=0, le=1)
    convenience_score: float = Field(..., ge=0, le=1)
    accessibility_score: float = Field(..., ge=0, le=1)
    overall_score: float = Field(..., ge=0, le=1)
    nearby_pois: List[PlaceResult] = Field(default_factory=list)


class MeetingPointOptions(BaseModel):
    max_walking_distance_m: float = Field(default=500.0, gt=0)
    preferred_categories: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_CATEGORIES)
    )
    avoid_categories: List[str] = Field(
        default_factory=lambda: list(DEFAULT_AVOID_CATEGORIES)
    )
    accessibility_required: bool = False
    max_points: int = Field(default=5, ge=1)
