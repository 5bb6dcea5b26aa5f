"""
Meeting Points Router

Ranked rendezvous suggestions along a route or between two locations.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ridematch.dependencies import get_orchestrator
from ridematch.models.location import LocationPoint, RouteGeometry
from ridematch.models.meeting_point import MeetingPointAnalysis, MeetingPointOptions
from ridematch.services.match_service import MatchOrchestrator


router = APIRouter()


class RouteMeetingPointsRequest(BaseModel):
    route: RouteGeometry
    passenger_location: LocationPoint
    options: Optional[MeetingPointOptions] = None


class BetweenMeetingPointsRequest(BaseModel):
    location_a: LocationPoint
    location_b: LocationPoint
    options: Optional[MeetingPointOptions] = None


@router.post("", response_model=List[MeetingPointAnalysis])
async def find_optimal_meeting_points(
    request: RouteMeetingPointsRequest,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    return await orchestrator.find_optimal_meeting_points(
        request.route, request.passenger_location, request.options
    )


@router.post("/between", response_model=List[MeetingPointAnalysis])
async def find_meeting_points_between(
    request: BetweenMeetingPointsRequest,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    """Meeting points along the route from location_a, the passenger, to location_b."""
    return await orchestrator.find_meeting_points_between(
        request.location_a, request.location_b, request.options
    )
