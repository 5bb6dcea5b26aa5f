"""
Route Overlap Analyzer

Determines how much of a source trip's route coincides with a candidate
trip's route.

Approach:
1. Near-identical endpoints (both within 1km) short-circuit to a fixed
   high overlap without any routing calls
2. Otherwise both routes are fetched and the source polyline is walked
   segment by segment against a grid index of the candidate's segments
3. Any routing failure degrades to a straight-line endpoint heuristic

analyze() never raises; it always returns a best-effort result.
"""

import asyncio
import logging
from typing import List, Tuple

from ridematch.exceptions import RoutingUnavailable
from ridematch.models.criteria import ScoringConfig
from ridematch.models.location import LocationPoint, RouteGeometry
from ridematch.models.match import RouteOverlapResult
from ridematch.services.routing_service import RoutingService
from ridematch.utils.geo_utils import (
    SegmentGridIndex,
    distance_km,
    distance_m,
    polyline_length_km,
)


logger = logging.getLogger(__name__)

MAX_SUGGESTED_POINTS = 3


class RouteOverlapAnalyzer:
    """Route overlap between two origin/destination pairs."""

    def __init__(self, routing: RoutingService, config: ScoringConfig):
        self.routing = routing
        self.config = config

    async def analyze(
        self,
        source_origin: LocationPoint,
        source_destination: LocationPoint,
        candidate_origin: LocationPoint,
        candidate_destination: LocationPoint,
    ) -> RouteOverlapResult:
        """
        Analyze route overlap between two trips.

        Returns overlap_percentage in [0, 1] along with shared, total and
        deviation distances in km.
        """
        origin_gap_km = distance_km(source_origin.as_tuple(), candidate_origin.as_tuple())
        destination_gap_km = distance_km(
            source_destination.as_tuple(), candidate_destination.as_tuple()
        )

        if (
            origin_gap_km <= self.config.near_identical_km
            and destination_gap_km <= self.config.near_identical_km
        ):
            total_km = distance_km(source_origin.as_tuple(), source_destination.as_tuple())
            return RouteOverlapResult(
                overlap_percentage=self.config.near_identical_overlap,
                shared_distance_km=total_km,
                total_distance_km=total_km,
                deviation_distance_km=self.config.near_identical_deviation_km,
                pickup_points=[candidate_origin],
                dropoff_points=[candidate_destination],
            )

        try:
            source_route, candidate_route = await asyncio.gather(
                self.routing.route(source_origin, source_destination),
                self.routing.route(candidate_origin, candidate_destination),
            )
            return self.compute_overlap(source_route, candidate_route)
        except RoutingUnavailable as e:
            logger.warning(f"Routing unavailable, using straight-line overlap: {e}")
        except Exception as e:
            logger.error(f"Route overlap analysis failed: {e}", exc_info=True)

        return self.fallback(
            source_origin, source_destination, candidate_origin, candidate_destination
        )

    def compute_overlap(
        self, source_route: RouteGeometry, candidate_route: RouteGeometry
    ) -> RouteOverlapResult:
        """
        Shared distance between two route polylines.

        A source segment counts as shared when both of its endpoints lie
        within segment_match_m of the matching endpoints of some candidate
        segment. Each source segment counts at most once.
        """
        source_points = [p.as_tuple() for p in source_route.points]
        candidate_points = [p.as_tuple() for p in candidate_route.points]

        total_km = source_route.distance_km or polyline_length_km(source_points)

        if len(source_points) < 2 or len(candidate_points) < 2 or total_km <= 0:
            return RouteOverlapResult(
                overlap_percentage=0.0,
                total_distance_km=total_km,
                deviation_distance_km=total_km,
            )

        threshold_m = self.config.segment_match_m
        index = SegmentGridIndex(candidate_points, cell_size_m=threshold_m)

        shared_km = 0.0
        pickup_points: List[LocationPoint] = []
        dropoff_points: List[LocationPoint] = []

        for i in range(len(source_points) - 1):
            start, end = source_points[i], source_points[i + 1]
            if not self._has_matching_segment(index, start, end, threshold_m):
                continue

            shared_km += distance_km(start, end)
            if len(pickup_points) < MAX_SUGGESTED_POINTS:
                pickup_points.append(source_route.points[i])
            if len(dropoff_points) < MAX_SUGGESTED_POINTS:
                dropoff_points.append(source_route.points[i + 1])

        return RouteOverlapResult(
            overlap_percentage=min(1.0, shared_km / total_km),
            shared_distance_km=shared_km,
            total_distance_km=total_km,
            deviation_distance_km=max(0.0, total_km - shared_km),
            pickup_points=pickup_points,
            dropoff_points=dropoff_points,
        )

    @staticmethod
    def _has_matching_segment(
        index: SegmentGridIndex,
        start: Tuple[float, float],
        end: Tuple[float, float],
        threshold_m: float,
    ) -> bool:
        for j in index.segments_near(start):
            candidate_start, candidate_end = index.segment(j)
            if (
                distance_m(start, candidate_start) <= threshold_m
                and distance_m(end, candidate_end) <= threshold_m
            ):
                return True
        return False

    def fallback(
        self,
        source_origin: LocationPoint,
        source_destination: LocationPoint,
        candidate_origin: LocationPoint,
        candidate_destination: LocationPoint,
    ) -> RouteOverlapResult:
        """Straight-line estimate from endpoint proximity."""
        total_km = distance_km(source_origin.as_tuple(), source_destination.as_tuple())
        max_proximity_km = max(
            distance_km(source_origin.as_tuple(), candidate_origin.as_tuple()),
            distance_km(source_destination.as_tuple(), candidate_destination.as_tuple()),
        )

        overlap = max(0.0, 1 - max_proximity_km / self.config.fallback_horizon_km)

        return RouteOverlapResult(
            overlap_percentage=overlap,
            shared_distance_km=total_km * overlap,
            total_distance_km=total_km,
            deviation_distance_km=max_proximity_km,
            pickup_points=[candidate_origin],
            dropoff_points=[candidate_destination],
            used_fallback=True,
        )
