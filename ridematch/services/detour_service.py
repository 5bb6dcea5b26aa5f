"""Detour Calculator - Extra distance/time a pairing imposes."""

import asyncio
import logging

from ridematch.exceptions import RoutingUnavailable
from ridematch.models.criteria import ScoringConfig
from ridematch.models.location import LocationPoint
from ridematch.models.match import DetourMetrics, RouteOverlapResult
from ridematch.services.routing_service import RoutingService


logger = logging.getLogger(__name__)


class DetourCalculator:
    """
    Detour = source origin -> candidate origin plus candidate destination ->
    source destination, measured by the routing collaborator.
    """

    def __init__(self, routing: RoutingService, config: ScoringConfig):
        self.routing = routing
        self.config = config

    async def calculate(
        self,
        source_origin: LocationPoint,
        source_destination: LocationPoint,
        candidate_origin: LocationPoint,
        candidate_destination: LocationPoint,
        overlap: RouteOverlapResult,
    ) -> DetourMetrics:
        try:
            pickup, dropoff = await asyncio.gather(
                self.routing.distance(source_origin, candidate_origin),
                self.routing.distance(candidate_destination, source_destination),
            )
            return DetourMetrics(
                detour_distance_km=(pickup.distance_m + dropoff.distance_m) / 1000,
                detour_time_min=(pickup.duration_s + dropoff.duration_s) / 60,
            )
        except RoutingUnavailable as e:
            logger.warning(f"Detour routing unavailable, estimating from deviation: {e}")
        except Exception as e:
            logger.error(f"Detour calculation failed: {e}", exc_info=True)

        return self.fallback(overlap)

    def fallback(self, overlap: RouteOverlapResult) -> DetourMetrics:
        """Deviation distance at a rough 2 minutes per km."""
        deviation = overlap.deviation_distance_km
        return DetourMetrics(
            detour_distance_km=deviation,
            detour_time_min=deviation * self.config.fallback_minutes_per_km,
            used_fallback=True,
        )
