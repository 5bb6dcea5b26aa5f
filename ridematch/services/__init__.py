"""Ride Match Services Package"""

from ridematch.services.routing_service import (
    RoutingService,
    GoogleMapsRoutingService,
    CachedRoutingService,
)
from ridematch.services.route_cache import RouteCache
from ridematch.services.route_overlap import RouteOverlapAnalyzer
from ridematch.services.detour_service import DetourCalculator
from ridematch.services.match_classifier import classify_match
from ridematch.services.compatibility_service import CompatibilityScorer
from ridematch.services.meeting_point_service import MeetingPointRanker
from ridematch.services.match_repository import MatchRepository
from ridematch.services.event_service import MatchEventSink, QueueEventSink, RedisEventSink
from ridematch.services.match_service import MatchOrchestrator

__all__ = [
    "RoutingService",
    "GoogleMapsRoutingService",
    "CachedRoutingService",
    "RouteCache",
    "RouteOverlapAnalyzer",
    "DetourCalculator",
    "classify_match",
    "CompatibilityScorer",
    "MeetingPointRanker",
    "MatchRepository",
    "MatchEventSink",
    "QueueEventSink",
    "RedisEventSink",
    "MatchOrchestrator",
]
