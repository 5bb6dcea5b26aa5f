"""Location Models - Points, routes and routing-collaborator payloads."""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class LocationPoint(BaseModel):
    """
    Geographic point with an address label.

    Frozen: once attached to a trip it never changes.
    """

    model_config = ConfigDict(frozen=True)

    address: str = Field(default="", description="Human-readable address")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    place_id: Optional[str] = Field(None, description="Provider place id")

    @classmethod
    def from_lat_lng(cls, lat: float, lng: float, address: str = "") -> "LocationPoint":
        """Create LocationPoint from latitude and longitude."""
        return cls(address=address, lat=lat, lng=lng)

    def as_tuple(self) -> Tuple[float, float]:
        """(lat, lng) tuple for geopy."""
        return (self.lat, self.lng)


class RouteGeometry(BaseModel):
    """Route returned by the routing collaborator."""

    points: List[LocationPoint] = Field(default_factory=list, description="Overview polyline")
    distance_m: float = Field(default=0.0, ge=0)
    duration_s: float = Field(default=0.0, ge=0)

    @property
    def distance_km(self) -> float:
        return self.distance_m / 1000

    def midpoint(self) -> Optional[LocationPoint]:
        """Middle polyline point, or None for an empty route."""
        if not self.points:
            return None
        return self.points[len(self.points) // 2]


class DistanceResult(BaseModel):
    """Point-to-point distance and duration."""

    distance_m: float = Field(..., ge=0)
    duration_s: float = Field(..., ge=0)


class AddressComponent(BaseModel):
    long_name: str = ""
    short_name: str = ""
    types: List[str] = Field(default_factory=list)


class GeocodeResult(BaseModel):
    """Reverse geocode result."""

    formatted_address: str
    address_components: List[AddressComponent] = Field(default_factory=list)


class PlaceResult(BaseModel):
    """Point of interest returned by a nearby search."""

    name: str = ""
    place_id: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    types: List[str] = Field(default_factory=list)
    rating: Optional[float] = None
