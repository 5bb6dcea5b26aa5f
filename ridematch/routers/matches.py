"""
Matches Router

Compatibility scoring and match lifecycle endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from ridematch.dependencies import get_orchestrator
from ridematch.models.criteria import MatchingCriteria
from ridematch.models.location import LocationPoint
from ridematch.models.match import (
    CompatibilityAnalysis,
    CreateMatchData,
    Match,
    MatchCreateResult,
    MatchStatus,
)
from ridematch.models.meeting_point import MeetingPointOptions
from ridematch.models.trip import TripRequest, UserPreferences
from ridematch.services.match_service import MatchOrchestrator


router = APIRouter()


class CompatibleTripsRequest(BaseModel):
    """Score a batch of candidates against one trip."""
    source: TripRequest
    candidates: List[TripRequest] = Field(default_factory=list)
    preferences: Optional[UserPreferences] = None
    criteria: Optional[MatchingCriteria] = None


class AnalyzeRequest(BaseModel):
    """Score a single pairing."""
    source: TripRequest
    candidate: TripRequest
    preferences: Optional[UserPreferences] = None
    criteria: Optional[MatchingCriteria] = None


class StatusUpdateRequest(BaseModel):
    status: MatchStatus


class CreateMatchRequest(CreateMatchData):
    """HTTP create payload; both owners are required so same-owner pairs are rejected."""
    trip_user_id: str = Field(..., description="Owner of trip_id")
    matched_trip_user_id: str = Field(..., description="Owner of matched_trip_id")


class SuggestMeetingPointsRequest(BaseModel):
    pickup_location: LocationPoint
    dropoff_location: LocationPoint
    options: Optional[MeetingPointOptions] = None


@router.post("/compatible", response_model=List[CompatibilityAnalysis])
async def find_compatible_trips(
    request: CompatibleTripsRequest,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    """
    Find compatible trips for a source trip.

    Results are filtered by the minimum match score and sorted best first.
    """
    return await orchestrator.find_compatible_trips(
        request.source,
        request.candidates,
        preferences=request.preferences,
        criteria=request.criteria,
    )


@router.post("/analyze", response_model=CompatibilityAnalysis)
async def analyze_compatibility(
    request: AnalyzeRequest,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    return await orchestrator.analyze_compatibility(
        request.source,
        request.candidate,
        criteria=request.criteria,
        preferences=request.preferences,
    )


@router.post("", response_model=MatchCreateResult, status_code=status.HTTP_201_CREATED)
async def create_match(
    data: CreateMatchRequest,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    """
    Persist a match.

    An existing pair is returned with already_exists set instead of an error.
    """
    return await orchestrator.create_match(data)


@router.get("/trip/{trip_id}", response_model=List[Match])
async def get_trip_matches(
    trip_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    return await orchestrator.get_trip_matches(trip_id, limit=limit, offset=offset)


@router.get("/{match_id}", response_model=Match)
async def get_match(
    match_id: str,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    match = await orchestrator.get_match(match_id)
    if not match:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Match not found"
        )
    return match


@router.patch("/{match_id}/status", response_model=Match)
async def update_match_status(
    match_id: str,
    request: StatusUpdateRequest,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    """Move a match forward. Backwards moves return 409."""
    return await orchestrator.update_match_status(match_id, request.status)


@router.post("/{match_id}/meeting-points", response_model=Match)
async def suggest_meeting_points(
    match_id: str,
    request: SuggestMeetingPointsRequest,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    """Store pickup and dropoff suggestions on an accepted match."""
    return await orchestrator.suggest_meeting_points(
        match_id,
        request.pickup_location,
        request.dropoff_location,
        request.options,
    )


@router.delete("/{match_id}")
async def delete_match(
    match_id: str,
    orchestrator: MatchOrchestrator = Depends(get_orchestrator)
):
    deleted = await orchestrator.delete_match(match_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Match not found"
        )
    return {"message": "Match deleted"}
