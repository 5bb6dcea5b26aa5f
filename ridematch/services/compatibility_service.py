"""
Compatibility Service

Multi-factor scoring of a candidate trip against a source trip.

Scoring algorithm:
1. Route overlap (primary) - routed polyline comparison, 40%
2. Departure time proximity, 25%
3. Ride preferences (smoking, pets, music, conversation), 20%
4. Detour distance within the user's budget, 10%
5. Price within the user's range, 5%

The weighted sum is then multiplied by a detour-time gate so a pairing whose
detour takes far longer than the user accepts is suppressed even when
everything else lines up.
"""

import logging
from enum import Enum
from typing import Any, List, Optional, Tuple

from ridematch.exceptions import InvalidLocationData
from ridematch.models.criteria import MatchingCriteria, ScoringConfig
from ridematch.models.match import CompatibilityAnalysis
from ridematch.models.trip import PreferenceChoice, TripRequest, UserPreferences
from ridematch.services.detour_service import DetourCalculator
from ridematch.services.match_classifier import classify_match
from ridematch.services.route_overlap import RouteOverlapAnalyzer
from ridematch.services.routing_service import RoutingService
from ridematch.utils.timezone_utils import minutes_between


logger = logging.getLogger(__name__)

INDIFFERENT = PreferenceChoice.INDIFFERENT.value
NO_PREFERENCE_DATA_SCORE = 0.8
CHEAPER_THAN_MIN_SCORE = 0.9
PRICE_OVER_BUDGET_TOLERANCE = 0.5  # Fraction of price_max
SHARED_SAVINGS_RATE = 0.5


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _normalize(value: Any) -> Optional[str]:
    """Collapse enums and booleans into comparable preference strings."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, bool):
        return PreferenceChoice.YES.value if value else PreferenceChoice.NO.value
    return str(value)


class CompatibilityScorer:
    """Combines route, time, preference, detour and price fit into one score."""

    def __init__(
        self,
        routing: RoutingService,
        config: Optional[ScoringConfig] = None,
        overlap_analyzer: Optional[RouteOverlapAnalyzer] = None,
        detour_calculator: Optional[DetourCalculator] = None,
    ):
        self.config = config or ScoringConfig()
        self.overlap_analyzer = overlap_analyzer or RouteOverlapAnalyzer(routing, self.config)
        self.detour_calculator = detour_calculator or DetourCalculator(routing, self.config)

    # =========================================================================
    # Sub-scores
    # =========================================================================

    def calculate_time_compatibility(
        self, time_difference_min: float, flexibility_min: float
    ) -> float:
        """
        Departure time score.

        1.0 within the flexibility window, then linear down to 0.0 at three
        times the window.
        """
        if time_difference_min <= flexibility_min:
            return 1.0
        if flexibility_min <= 0:
            return 0.0
        return _clamp(1 - (time_difference_min - flexibility_min) / (2 * flexibility_min))

    def calculate_preferences_compatibility(
        self, preferences: UserPreferences, candidate: TripRequest
    ) -> float:
        """
        Fraction of the four preference axes that agree.

        Indifferent or unset on either side counts as agreement. When
        neither side set anything at all a neutral 0.8 is returned.
        """
        axes: List[Tuple[Optional[str], Optional[str]]] = [
            (_normalize(preferences.smoking_preference), _normalize(candidate.smoking_allowed)),
            (_normalize(preferences.pets_preference), _normalize(candidate.pets_allowed)),
            (_normalize(preferences.music_preference), _normalize(candidate.music_preference)),
            (_normalize(preferences.conversation_level), _normalize(candidate.conversation_level)),
        ]

        if all(wanted is None and offered is None for wanted, offered in axes):
            return NO_PREFERENCE_DATA_SCORE

        agreeing = 0
        for wanted, offered in axes:
            if wanted in (None, INDIFFERENT) or offered in (None, INDIFFERENT):
                agreeing += 1
            elif wanted == offered:
                agreeing += 1

        return agreeing / len(axes)

    def calculate_price_compatibility(
        self, price: Optional[float], price_min: float, price_max: float
    ) -> float:
        """
        Price score.

        No price is always compatible. Cheaper than the minimum still scores
        0.9; above the maximum decays to 0 at 50% over budget.
        """
        if not price:
            return 1.0
        if price_min <= price <= price_max:
            return 1.0
        if price < price_min:
            return CHEAPER_THAN_MIN_SCORE

        tolerance = price_max * PRICE_OVER_BUDGET_TOLERANCE
        if tolerance <= 0:
            return 0.0
        return _clamp(1 - (price - price_max) / tolerance)

    @staticmethod
    def deviation_gate(value: float, budget: float) -> float:
        """Full credit within budget, linear falloff over one budget-width beyond."""
        if value <= budget:
            return 1.0
        return _clamp(1 - (value - budget) / budget)

    @staticmethod
    def calculate_estimated_savings(
        price: Optional[float], shared_distance_km: float, total_distance_km: float
    ) -> float:
        """Half the fare on the shared portion of the route."""
        if not price or not shared_distance_km or not total_distance_km:
            return 0.0
        shared_portion = min(1.0, shared_distance_km / total_distance_km)
        return price * shared_portion * SHARED_SAVINGS_RATE

    def combine(
        self,
        route_score: float,
        time_score: float,
        preferences_score: float,
        distance_gate: float,
        price_score: float,
        time_deviation_gate: float,
    ) -> float:
        """Weighted sum, gated by detour time, clamped to [0, 1]."""
        weights = self.config.weights
        weighted = _clamp(
            route_score * weights.route
            + time_score * weights.time
            + preferences_score * weights.preferences
            + distance_gate * weights.distance
            + price_score * weights.price
        )
        if self.config.apply_detour_time_gate:
            weighted *= time_deviation_gate
        return _clamp(weighted)

    # =========================================================================
    # Full analysis
    # =========================================================================

    async def analyze_compatibility(
        self,
        source: TripRequest,
        candidate: TripRequest,
        criteria: Optional[MatchingCriteria] = None,
        preferences: Optional[UserPreferences] = None,
    ) -> CompatibilityAnalysis:
        """
        Analyze compatibility between two trips.

        Routing failures degrade individual terms instead of failing.
        Raises InvalidLocationData if either trip has no coordinates.
        """
        for trip in (source, candidate):
            if not trip.has_coordinates:
                raise InvalidLocationData(f"Trip {trip.id} is missing origin or destination")

        criteria = criteria or MatchingCriteria()
        preferences = preferences or UserPreferences.from_trip(source)

        overlap = await self.overlap_analyzer.analyze(
            source.origin, source.destination, candidate.origin, candidate.destination
        )

        time_difference = minutes_between(source.departure_time, candidate.departure_time)
        time_score = self.calculate_time_compatibility(
            time_difference, criteria.time_flexibility_min
        )
        preferences_score = self.calculate_preferences_compatibility(preferences, candidate)
        price_score = self.calculate_price_compatibility(
            candidate.price_per_seat, criteria.price_min, criteria.price_max
        )

        match_type = classify_match(
            overlap.overlap_percentage,
            overlap.deviation_distance_km,
            overlap.total_distance_km,
            exact_route_threshold=self.config.exact_route_threshold,
            partial_overlap_threshold=self.config.partial_overlap_threshold,
        )

        detour = await self.detour_calculator.calculate(
            source.origin, source.destination, candidate.origin, candidate.destination, overlap
        )

        distance_gate = self.deviation_gate(
            detour.detour_distance_km, criteria.max_detour_distance_km
        )
        time_deviation_gate = self.deviation_gate(
            detour.detour_time_min, criteria.max_detour_time_min
        )

        overall = self.combine(
            overlap.overlap_percentage,
            time_score,
            preferences_score,
            distance_gate,
            price_score,
            time_deviation_gate,
        )

        return CompatibilityAnalysis(
            trip_id=source.id,
            matched_trip_id=candidate.id,
            route_score=_clamp(overlap.overlap_percentage),
            time_score=time_score,
            preferences_score=preferences_score,
            price_score=price_score,
            overall_score=overall,
            match_type=match_type,
            detour_distance_km=detour.detour_distance_km,
            detour_time_min=detour.detour_time_min,
            estimated_savings=self.calculate_estimated_savings(
                candidate.price_per_seat,
                overlap.shared_distance_km,
                overlap.total_distance_km,
            ),
            shared_distance_km=overlap.shared_distance_km,
            time_difference_min=time_difference,
            degraded=overlap.used_fallback or detour.used_fallback,
        )
