"""
Trip Request Model

Trips are created by the trip-creation flow and are read-only to the
matching core.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ridematch.models.location import LocationPoint


class TripStatus(str, Enum):
    """Status of a trip request."""

    ACTIVE = "ACTIVE"  # Open for matching
    CANCELLED = "CANCELLED"
    MATCHED = "MATCHED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class PreferenceChoice(str, Enum):
    """Tri-state categorical preference."""

    YES = "yes"
    NO = "no"
    INDIFFERENT = "indifferent"


class ConversationLevel(str, Enum):
    CHATTY = "chatty"
    QUIET = "quiet"
    INDIFFERENT = "indifferent"


class TripRequest(BaseModel):
    """
    Trip request as read from the trips collection.

    Fields:
    - id: Unique trip ID
    - user_id: Owner of the trip
    - origin / destination: Endpoints (None when the trip was saved without
      coordinates; such trips are excluded from matching)
    - departure_time: Planned departure
    - max_passengers / available_seats: Capacity
    - price_per_seat / currency: Optional pricing
    - status: Current trip status
    - smoking_allowed, pets_allowed, music_preference, conversation_level:
      Ride-atmosphere settings, None when the owner never set them
    """

    id: str = Field(..., description="Unique trip ID")
    user_id: str = Field(..., description="Trip owner")
    origin: Optional[LocationPoint] = Field(None, description="Trip origin")
    destination: Optional[LocationPoint] = Field(None, description="Trip destination")
    departure_time: datetime = Field(..., description="Planned departure time")
    max_passengers: int = Field(default=1, ge=0)
    available_seats: int = Field(default=1, ge=0)
    price_per_seat: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, max_length=3)
    status: TripStatus = Field(default=TripStatus.ACTIVE)
    smoking_allowed: Optional[bool] = None
    pets_allowed: Optional[bool] = None
    music_preference: Optional[PreferenceChoice] = None
    conversation_level: Optional[ConversationLevel] = None

    class Config:
        use_enum_values = True

    @property
    def has_coordinates(self) -> bool:
        return self.origin is not None and self.destination is not None


class UserPreferences(BaseModel):
    """
    Per-user matching preferences.

    Categorical fields describe what the user wants from a ride; numeric
    fields override the default matching criteria.
    """

    smoking_preference: Optional[PreferenceChoice] = None
    pets_preference: Optional[bool] = None
    music_preference: Optional[PreferenceChoice] = None
    conversation_level: Optional[ConversationLevel] = None

    max_detour_distance_km: Optional[float] = None
    max_detour_time_min: Optional[float] = None
    max_walking_distance_m: Optional[float] = None
    time_flexibility_min: Optional[float] = None
    price_range_min: Optional[float] = None
    price_range_max: Optional[float] = None

    class Config:
        use_enum_values = True

    @classmethod
    def from_trip(cls, trip: TripRequest) -> "UserPreferences":
        """Use a trip's own ride settings as its owner's preferences."""
        smoking = None
        if trip.smoking_allowed is not None:
            smoking = PreferenceChoice.YES if trip.smoking_allowed else PreferenceChoice.NO
        return cls(
            smoking_preference=smoking,
            pets_preference=trip.pets_allowed,
            music_preference=trip.music_preference,
            conversation_level=trip.conversation_level,
        )
