"""
Matching Criteria & Scoring Configuration

Both objects are validated once at construction and frozen afterwards.
Invalid combinations raise InvalidCriteria before any scoring runs.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ridematch.exceptions import InvalidCriteria
from ridematch.models.trip import UserPreferences


DEFAULT_MAX_DETOUR_DISTANCE_KM = 10.0
DEFAULT_MAX_DETOUR_TIME_MIN = 30.0
DEFAULT_MAX_WALKING_DISTANCE_M = 500.0
DEFAULT_TIME_FLEXIBILITY_MIN = 15.0
DEFAULT_PRICE_MIN = 0.0
DEFAULT_PRICE_MAX = 100.0


class MatchingCriteria(BaseModel):
    """Per-user matching limits. Defaults apply when the user set nothing."""

    model_config = ConfigDict(frozen=True)

    max_detour_distance_km: float = DEFAULT_MAX_DETOUR_DISTANCE_KM
    max_detour_time_min: float = DEFAULT_MAX_DETOUR_TIME_MIN
    max_walking_distance_m: float = DEFAULT_MAX_WALKING_DISTANCE_M
    time_flexibility_min: float = DEFAULT_TIME_FLEXIBILITY_MIN
    price_min: float = DEFAULT_PRICE_MIN
    price_max: float = DEFAULT_PRICE_MAX

    @model_validator(mode="after")
    def _validate(self) -> "MatchingCriteria":
        for name in (
            "max_detour_distance_km",
            "max_detour_time_min",
            "max_walking_distance_m",
        ):
            if getattr(self, name) <= 0:
                raise InvalidCriteria(f"{name} must be positive")
        for name in ("time_flexibility_min", "price_min", "price_max"):
            if getattr(self, name) < 0:
                raise InvalidCriteria(f"{name} cannot be negative")
        if self.price_min > self.price_max:
            raise InvalidCriteria(
                f"price_min ({self.price_min}) exceeds price_max ({self.price_max})"
            )
        return self

    @classmethod
    def from_preferences(
        cls, preferences: Optional[UserPreferences] = None
    ) -> "MatchingCriteria":
        """Build criteria from stored user preferences, filling defaults."""
        if preferences is None:
            return cls()

        def pick(value: Optional[float], default: float) -> float:
            return default if value is None else value

        return cls(
            max_detour_distance_km=pick(
                preferences.max_detour_distance_km, DEFAULT_MAX_DETOUR_DISTANCE_KM
            ),
            max_detour_time_min=pick(
                preferences.max_detour_time_min, DEFAULT_MAX_DETOUR_TIME_MIN
            ),
            max_walking_distance_m=pick(
                preferences.max_walking_distance_m, DEFAULT_MAX_WALKING_DISTANCE_M
            ),
            time_flexibility_min=pick(
                preferences.time_flexibility_min, DEFAULT_TIME_FLEXIBILITY_MIN
            ),
            price_min=pick(preferences.price_range_min, DEFAULT_PRICE_MIN),
            price_max=pick(preferences.price_range_max, DEFAULT_PRICE_MAX),
        )

    def merged_with(self, overrides: Optional["MatchingCriteria"]) -> "MatchingCriteria":
        """Explicitly supplied criteria win over preference-derived ones."""
        if overrides is None:
            return self
        explicit = overrides.model_dump(exclude_unset=True)
        return MatchingCriteria(**{**self.model_dump(), **explicit})


class ScoringWeights(BaseModel):
    """Weights of the additive compatibility terms. Must sum to 1."""

    model_config = ConfigDict(frozen=True)

    route: float = 0.4
    time: float = 0.25
    preferences: float = 0.2
    distance: float = 0.1
    price: float = 0.05

    @model_validator(mode="after")
    def _validate(self) -> "ScoringWeights":
        values = self.model_dump()
        negative = [k for k, v in values.items() if v < 0]
        if negative:
            raise InvalidCriteria(f"Negative scoring weights: {', '.join(negative)}")
        total = sum(values.values())
        if abs(total - 1.0) > 1e-6:
            raise InvalidCriteria(f"Scoring weights must sum to 1.0, got {total:.4f}")
        return self


class ScoringConfig(BaseModel):
    """
    Engine-wide scoring configuration.

    Constructed once (usually from Settings) and handed to every scorer.
    """

    model_config = ConfigDict(frozen=True)

    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    exact_route_threshold: float = 0.95
    partial_overlap_threshold: float = 0.3
    min_match_score: float = 0.3

    near_identical_km: float = 1.0  # Endpoint proximity for the fast path
    near_identical_overlap: float = 0.98
    near_identical_deviation_km: float = 0.1
    segment_match_m: float = 500.0  # Segment endpoint tolerance
    fallback_horizon_km: float = 10.0  # Straight-line fallback scale
    fallback_minutes_per_km: float = 2.0

    apply_detour_time_gate: bool = True
    max_concurrency: int = 8

    @model_validator(mode="after")
    def _validate(self) -> "ScoringConfig":
        for name in (
            "exact_route_threshold",
            "partial_overlap_threshold",
            "min_match_score",
            "near_identical_overlap",
        ):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise InvalidCriteria(f"{name} must be within [0, 1], got {value}")
        if self.partial_overlap_threshold > self.exact_route_threshold:
            raise InvalidCriteria(
                "partial_overlap_threshold cannot exceed exact_route_threshold"
            )
        for name in (
            "near_identical_km",
            "segment_match_m",
            "fallback_horizon_km",
            "fallback_minutes_per_km",
        ):
            if getattr(self, name) <= 0:
                raise InvalidCriteria(f"{name} must be positive")
        if self.near_identical_deviation_km < 0:
            raise InvalidCriteria("near_identical_deviation_km cannot be negative")
        if self.max_concurrency < 1:
            raise InvalidCriteria("max_concurrency must be at least 1")
        return self
