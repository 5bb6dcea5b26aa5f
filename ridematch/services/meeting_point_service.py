"""
Meeting Point Service

Proposes and ranks rendezvous points along a route.

Each candidate is scored on:
1. Safety - busy, well-lit kinds of places nearby; nightlife lowers it
2. Convenience - useful amenities and their ratings
3. Accessibility - transit, parking and step-free kinds of places

Overall = 40% safety + 35% convenience + 25% accessibility.
"""

import asyncio
import logging
import re
from typing import Iterable, List, Optional

from ridematch.exceptions import GeocodeFailed, RoutingUnavailable
from ridematch.models.location import (
    DistanceResult,
    GeocodeResult,
    LocationPoint,
    PlaceResult,
    RouteGeometry,
)
from ridematch.models.meeting_point import (
    MeetingPoint,
    MeetingPointAnalysis,
    MeetingPointOptions,
)
from ridematch.services.routing_service import RoutingService
from ridematch.utils.geo_utils import distance_m, midpoint, sample_indices


logger = logging.getLogger(__name__)


SAFETY_POSITIVE_TYPES = {
    "police", "hospital", "shopping_mall", "bank", "gas_station",
    "transit_station", "school", "university", "library",
}
SAFETY_NEGATIVE_TYPES = {"night_club", "bar", "liquor_store", "cemetery"}
CONVENIENT_TYPES = {
    "gas_station", "convenience_store", "restaurant", "cafe",
    "shopping_mall", "supermarket", "pharmacy", "bank", "atm",
}
ACCESSIBLE_TYPES = {
    "transit_station", "subway_station", "bus_station",
    "hospital", "shopping_mall", "parking",
}
MAIN_STREET_PATTERN = re.compile(r"\b(main|central|downtown|plaza|square)\b", re.IGNORECASE)

SAMPLE_POINTS = 20
MAX_POI_RADIUS_M = 500
MIN_VIABLE_SCORE = 0.3
WALKING_SECONDS_PER_METER = 0.72  # 5 km/h

FALLBACK_SAFETY = 0.5
FALLBACK_CONVENIENCE = 0.3
FALLBACK_ACCESSIBILITY = 0.5
FALLBACK_OVERALL = 0.4


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _has_type(poi: PlaceResult, types: Iterable[str]) -> bool:
    return any(t in types for t in poi.types)


class MeetingPointRanker:
    """Ranks candidate meeting points along a route."""

    def __init__(self, routing: RoutingService, max_concurrency: int = 5):
        self.routing = routing
        self.max_concurrency = max_concurrency

    async def find_optimal_meeting_points(
        self,
        route: RouteGeometry,
        passenger_location: LocationPoint,
        options: Optional[MeetingPointOptions] = None,
    ) -> List[MeetingPointAnalysis]:
        """
        Find the best meeting points along a route for a passenger.

        Returns at most options.max_points analyses, each scoring above 0.3,
        best first. Falls back to the route midpoint if the routing
        collaborator fails.
        """
        options = options or MeetingPointOptions()
        if not route.points:
            return []

        try:
            candidates = self.get_candidate_points(
                route.points, passenger_location, options.max_walking_distance_m
            )
            analyses = await self._analyze_candidates(candidates, passenger_location, options)
        except Exception as e:
            logger.error(f"Error finding meeting points, using route midpoint: {e}")
            return self.fallback_meeting_points(route)

        viable = [a for a in analyses if a.overall_score > MIN_VIABLE_SCORE]
        viable.sort(key=lambda a: a.overall_score, reverse=True)
        return viable[: options.max_points]

    async def find_meeting_points_between(
        self,
        location_a: LocationPoint,
        location_b: LocationPoint,
        options: Optional[MeetingPointOptions] = None,
    ) -> List[MeetingPointAnalysis]:
        """Meeting points along the route from A to B, A being the passenger."""
        try:
            route = await self.routing.route(location_a, location_b)
        except Exception as e:
            logger.warning(f"Route between locations unavailable, suggesting midpoint: {e}")
            mid_lat, mid_lng = midpoint(location_a.as_tuple(), location_b.as_tuple())
            return [self._neutral_analysis(
                MeetingPoint(address="Midpoint between locations", lat=mid_lat, lng=mid_lng)
            )]

        return await self.find_optimal_meeting_points(route, location_a, options)

    async def calculate_walking_distance(
        self, origin: LocationPoint, point: MeetingPoint
    ) -> DistanceResult:
        """Walking distance to a meeting point, straight-line if routing fails."""
        try:
            return await self.routing.distance(origin, point.as_location(), mode="walking")
        except RoutingUnavailable as e:
            logger.warning(f"Walking distance unavailable, using straight line: {e}")
            meters = distance_m(origin.as_tuple(), (point.lat, point.lng))
            return DistanceResult(
                distance_m=meters,
                duration_s=meters * WALKING_SECONDS_PER_METER,
            )

    # =========================================================================
    # Candidate selection
    # =========================================================================

    @staticmethod
    def get_candidate_points(
        route_points: List[LocationPoint],
        passenger_location: LocationPoint,
        max_walking_distance_m: float,
    ) -> List[LocationPoint]:
        """Roughly 20 evenly spaced route points within walking distance."""
        passenger = passenger_location.as_tuple()
        return [
            route_points[i]
            for i in sample_indices(len(route_points), SAMPLE_POINTS)
            if distance_m(passenger, route_points[i].as_tuple()) <= max_walking_distance_m
        ]

    async def _analyze_candidates(
        self,
        candidates: List[LocationPoint],
        passenger_location: LocationPoint,
        options: MeetingPointOptions,
    ) -> List[MeetingPointAnalysis]:
        gate = asyncio.Semaphore(self.max_concurrency)

        async def analyze_one(point: LocationPoint) -> MeetingPointAnalysis:
            async with gate:
                return await self.analyze_meeting_point(point, passenger_location, options)

        results = await asyncio.gather(
            *[analyze_one(point) for point in candidates],
            return_exceptions=True,
        )

        analyses = []
        for point, result in zip(candidates, results):
            if isinstance(result, RoutingUnavailable):
                raise result
            if isinstance(result, GeocodeFailed):
                logger.info(f"Skipping meeting point {point.lat},{point.lng}: {result}")
                continue
            if isinstance(result, Exception):
                logger.error(f"Error analyzing meeting point {point.lat},{point.lng}: {result}")
                continue
            analyses.append(result)
        return analyses

    # =========================================================================
    # Scoring
    # =========================================================================

    async def analyze_meeting_point(
        self,
        point: LocationPoint,
        passenger_location: LocationPoint,
        options: MeetingPointOptions,
    ) -> MeetingPointAnalysis:
        """Score a single candidate point."""
        geocode = await self.routing.reverse_geocode(point)
        radius = min(options.max_walking_distance_m, MAX_POI_RADIUS_M)
        nearby_pois = await self.routing.nearby_search(point, radius, "establishment")

        safety = self.calculate_safety_score(nearby_pois, geocode)
        convenience = self.calculate_convenience_score(nearby_pois, options)
        accessibility = self.calculate_accessibility_score(nearby_pois, options)

        overall = safety * 0.4 + convenience * 0.35 + accessibility * 0.25

        return MeetingPointAnalysis(
            point=MeetingPoint(
                address=geocode.formatted_address,
                lat=point.lat,
                lng=point.lng,
                walking_distance_m=distance_m(passenger_location.as_tuple(), point.as_tuple()),
                accessibility=self.accessibility_label(accessibility),
            ),
            safety_score=safety,
            convenience_score=convenience,
            accessibility_score=accessibility,
            overall_score=_clamp(overall),
            nearby_pois=nearby_pois,
        )

    @staticmethod
    def calculate_safety_score(
        nearby_pois: List[PlaceResult],
        geocode: GeocodeResult,
    ) -> float:
        score = 0.5

        positive = sum(1 for poi in nearby_pois if _has_type(poi, SAFETY_POSITIVE_TYPES))
        negative = sum(1 for poi in nearby_pois if _has_type(poi, SAFETY_NEGATIVE_TYPES))
        score += positive * 0.1 - negative * 0.15

        on_main_street = any(
            "route" in component.types and MAIN_STREET_PATTERN.search(component.long_name)
            for component in geocode.address_components
        )
        if on_main_street:
            score += 0.1

        return _clamp(score)

    @staticmethod
    def calculate_convenience_score(
        nearby_pois: List[PlaceResult], options: MeetingPointOptions
    ) -> float:
        avoid = set(options.avoid_categories)
        preferred = set(options.preferred_categories)
        usable = [poi for poi in nearby_pois if not _has_type(poi, avoid)]

        score = 0.3

        convenient = [poi for poi in usable if _has_type(poi, CONVENIENT_TYPES)]
        score += min(0.4, len(convenient) * 0.08)

        ratings = [poi.rating for poi in convenient if poi.rating]
        if ratings:
            average_rating = sum(ratings) / len(ratings)
            score += (average_rating - 3) * 0.1

        score += 0.05 * sum(1 for poi in usable if _has_type(poi, preferred))

        return _clamp(score)

    @staticmethod
    def calculate_accessibility_score(
        nearby_pois: List[PlaceResult], options: MeetingPointOptions
    ) -> float:
        accessible = sum(1 for poi in nearby_pois if _has_type(poi, ACCESSIBLE_TYPES))

        score = 0.5 + min(0.3, accessible * 0.1)

        if options.accessibility_required and accessible == 0:
            score *= 0.3

        return _clamp(score)

    @staticmethod
    def accessibility_label(score: float) -> str:
        if score > 0.7:
            return "high"
        if score > 0.4:
            return "medium"
        return "low"

    # =========================================================================
    # Fallbacks
    # =========================================================================

    @staticmethod
    def _neutral_analysis(point: MeetingPoint) -> MeetingPointAnalysis:
        return MeetingPointAnalysis(
            point=point,
            safety_score=FALLBACK_SAFETY,
            convenience_score=FALLBACK_CONVENIENCE,
            accessibility_score=FALLBACK_ACCESSIBILITY,
            overall_score=FALLBACK_OVERALL,
        )

    def fallback_meeting_points(self, route: RouteGeometry) -> List[MeetingPointAnalysis]:
        """Single neutral candidate at the route midpoint."""
        mid = route.midpoint()
        if mid is None:
            return []
        return [self._neutral_analysis(
            MeetingPoint(address="Meeting point along route", lat=mid.lat, lng=mid.lng)
        )]
