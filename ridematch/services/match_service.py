"""
Match Service

Orchestrates candidate scoring and owns the match lifecycle.

Matching flow:
1. Filter candidates (same trip, same owner, inactive, no seats)
2. Score survivors concurrently, bounded by a semaphore and a batch deadline
3. Keep analyses above the minimum score, best first

Lifecycle:
SUGGESTED -> VIEWED -> CONTACTED -> ACCEPTED | DECLINED, any of them -> EXPIRED.
Status only moves forward. Every create and status change is emitted as an
event for notification consumers.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from ridematch.config import settings
from ridematch.exceptions import (
    DuplicateMatch,
    InvalidLocationData,
    InvalidStatusTransition,
    MatchNotFound,
)
from ridematch.models.criteria import MatchingCriteria, ScoringConfig
from ridematch.models.location import LocationPoint, RouteGeometry
from ridematch.models.match import (
    STATUS_RANK,
    TERMINAL_STATUSES,
    CompatibilityAnalysis,
    CreateMatchData,
    Match,
    MatchCreateResult,
    MatchEvent,
    MatchEventType,
    MatchFilters,
    MatchStats,
    MatchStatus,
)
from ridematch.models.meeting_point import MeetingPointAnalysis, MeetingPointOptions
from ridematch.models.trip import TripRequest, TripStatus, UserPreferences
from ridematch.services.compatibility_service import CompatibilityScorer
from ridematch.services.event_service import MatchEventSink
from ridematch.services.match_repository import MatchRepository
from ridematch.services.meeting_point_service import MeetingPointRanker
from ridematch.services.routing_service import RoutingService
from ridematch.utils.timezone_utils import ensure_utc, utc_now


logger = logging.getLogger(__name__)

DEFAULT_LISTED_STATUSES = [MatchStatus.SUGGESTED.value, MatchStatus.VIEWED.value]

STATUS_TIMESTAMPS = {
    MatchStatus.VIEWED: "viewed_at",
    MatchStatus.CONTACTED: "contacted_at",
    MatchStatus.ACCEPTED: "responded_at",
    MatchStatus.DECLINED: "responded_at",
}


class MatchOrchestrator:
    """
    Entry point of the matching core.

    Collaborators are passed in; nothing here reaches for a global routing
    client or cache.
    """

    def __init__(
        self,
        routing: RoutingService,
        repository: Optional[MatchRepository] = None,
        event_sink: Optional[MatchEventSink] = None,
        config: Optional[ScoringConfig] = None,
        scorer: Optional[CompatibilityScorer] = None,
        meeting_point_ranker: Optional[MeetingPointRanker] = None,
        match_expiry_days: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ):
        self.config = config or ScoringConfig()
        self.repository = repository or MatchRepository()
        self.event_sink = event_sink
        self.scorer = scorer or CompatibilityScorer(routing, self.config)
        self.meeting_point_ranker = meeting_point_ranker or MeetingPointRanker(routing)
        self.match_expiry_days = (
            match_expiry_days if match_expiry_days is not None else settings.match_expiry_days
        )
        self.deadline_seconds = (
            deadline_seconds if deadline_seconds is not None
            else settings.matching_deadline_seconds
        )

    # =========================================================================
    # Matching
    # =========================================================================

    def _is_eligible(self, source: TripRequest, candidate: TripRequest) -> bool:
        if candidate.id == source.id:
            return False
        if candidate.user_id == source.user_id:
            return False
        if candidate.status != TripStatus.ACTIVE.value:
            return False
        return candidate.available_seats > 0

    async def find_compatible_trips(
        self,
        source: TripRequest,
        candidates: List[TripRequest],
        preferences: Optional[UserPreferences] = None,
        criteria: Optional[MatchingCriteria] = None,
        deadline_seconds: Optional[float] = None,
    ) -> List[CompatibilityAnalysis]:
        """
        Score candidates against a source trip.

        A candidate that fails to score is dropped; the batch continues.
        When the deadline passes, unfinished analyses are cancelled and the
        completed ones are still returned. Cancelling the call itself cancels
        every analysis and re-raises CancelledError with no results.
        """
        if not source.has_coordinates:
            raise InvalidLocationData(f"Trip {source.id} is missing origin or destination")

        effective_criteria = MatchingCriteria.from_preferences(preferences).merged_with(criteria)
        eligible = [c for c in candidates if self._is_eligible(source, c)]
        if not eligible:
            return []

        gate = asyncio.Semaphore(self.config.max_concurrency)

        async def score(candidate: TripRequest) -> Optional[CompatibilityAnalysis]:
            async with gate:
                try:
                    return await self.scorer.analyze_compatibility(
                        source, candidate, effective_criteria, preferences
                    )
                except InvalidLocationData as e:
                    logger.info(f"Skipping candidate {candidate.id}: {e}")
                except Exception as e:
                    logger.error(f"Error scoring candidate {candidate.id}: {e}")
                return None

        tasks = [asyncio.create_task(score(c)) for c in eligible]
        timeout = deadline_seconds if deadline_seconds is not None else self.deadline_seconds
        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            # Caller cancelled the batch: stop every analysis, then propagate
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Matching for trip {source.id} cancelled by caller")
            raise

        if pending:
            logger.warning(
                f"Matching deadline of {timeout}s reached for trip {source.id}: "
                f"{len(pending)}/{len(tasks)} candidates not scored"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        analyses = []
        for task in done:
            analysis = task.result()
            if analysis is not None and analysis.overall_score >= self.config.min_match_score:
                analyses.append(analysis)
        analyses.sort(key=lambda a: a.overall_score, reverse=True)

        logger.info(
            f"Trip {source.id}: {len(analyses)} compatible of {len(eligible)} eligible"
        )
        return analyses

    async def analyze_compatibility(
        self,
        source: TripRequest,
        candidate: TripRequest,
        criteria: Optional[MatchingCriteria] = None,
        preferences: Optional[UserPreferences] = None,
    ) -> CompatibilityAnalysis:
        return await self.scorer.analyze_compatibility(source, candidate, criteria, preferences)

    # =========================================================================
    # Match creation
    # =========================================================================

    async def create_match(self, data: CreateMatchData) -> MatchCreateResult:
        """
        Persist a match and its reciprocal row.

        An existing pair is reported through already_exists rather than an
        error. The reciprocal insert is best-effort. Same-owner pairs are
        rejected when both owner ids are given; callers that omit them (the
        analysis path, whose candidates were already filtered by owner) own
        that check.
        """
        if data.trip_id == data.matched_trip_id:
            raise ValueError("Cannot match a trip with itself")
        if (
            data.trip_user_id
            and data.matched_trip_user_id
            and data.trip_user_id == data.matched_trip_user_id
        ):
            raise ValueError("Cannot match two trips owned by the same user")

        now = utc_now()
        fields = data.model_dump(exclude={"trip_user_id", "matched_trip_user_id"})
        match = Match(
            match_id=str(uuid.uuid4()),
            status=MatchStatus.SUGGESTED,
            created_at=now,
            expires_at=now + timedelta(days=self.match_expiry_days),
            **fields,
        )

        try:
            await self.repository.insert(match)
        except DuplicateMatch:
            existing = await self.repository.get_by_pair(data.trip_id, data.matched_trip_id)
            logger.info(f"Match {data.trip_id} -> {data.matched_trip_id} already exists")
            return MatchCreateResult(match=existing, already_exists=True)

        reciprocal_created = await self._create_reciprocal(match)
        await self._emit(MatchEventType.MATCH_CREATED, match)

        logger.info(f"Created match {match.match_id} ({data.trip_id} -> {data.matched_trip_id})")
        return MatchCreateResult(
            match=match, created=True, reciprocal_created=reciprocal_created
        )

    async def _create_reciprocal(self, match: Match) -> bool:
        reciprocal = match.model_copy(update={
            "match_id": str(uuid.uuid4()),
            "trip_id": match.matched_trip_id,
            "matched_trip_id": match.trip_id,
        })
        try:
            await self.repository.insert(reciprocal)
            return True
        except DuplicateMatch:
            logger.info(f"Reciprocal match for {match.match_id} already exists")
        except Exception as e:
            logger.error(f"Failed to create reciprocal match for {match.match_id}: {e}")
        return False

    async def create_matches_from_analysis(
        self, trip_id: str, analyses: List[CompatibilityAnalysis]
    ) -> Dict[str, Any]:
        """Persist a batch of analyses; returns created/existing counts and errors."""
        created = 0
        already_existing = 0
        errors: List[str] = []

        for analysis in analyses:
            try:
                result = await self.create_match(CreateMatchData.from_analysis(trip_id, analysis))
            except Exception as e:
                logger.error(f"Failed to create match for {analysis.matched_trip_id}: {e}")
                errors.append(f"{analysis.matched_trip_id}: {e}")
                continue

            if result.created:
                created += 1
            elif result.already_exists:
                already_existing += 1

        return {"created": created, "already_existing": already_existing, "errors": errors}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def update_match_status(
        self, match_id: str, status: Union[MatchStatus, str]
    ) -> Match:
        """
        Move a match forward in its lifecycle.

        The write only applies while the row still has the status it was
        read with; a lost race is re-checked against the fresh row, so
        concurrent updates never move a match backwards. A match past its
        expiry is moved to EXPIRED instead and the requested move is
        rejected. Re-entering the current status is a no-op without an event.
        Raises MatchNotFound or InvalidStatusTransition.
        """
        target = MatchStatus(status)

        while True:
            match = await self.repository.get(match_id)
            if match is None:
                raise MatchNotFound(match_id)

            current = MatchStatus(match.status)
            now = utc_now()

            if current not in TERMINAL_STATUSES and ensure_utc(match.expires_at) < now:
                expired = await self._transition(match_id, current, MatchStatus.EXPIRED, now)
                if expired is None:
                    continue
                if target == MatchStatus.EXPIRED:
                    return expired
                raise InvalidStatusTransition(MatchStatus.EXPIRED.value, target.value)

            if target == current:
                return match

            if current in TERMINAL_STATUSES or STATUS_RANK[target] <= STATUS_RANK[current]:
                raise InvalidStatusTransition(current.value, target.value)

            updated = await self._transition(match_id, current, target, now)
            if updated is not None:
                return updated
            logger.info(f"Match {match_id} left {current.value} during update, re-checking")

    async def _transition(
        self,
        match_id: str,
        current: MatchStatus,
        target: MatchStatus,
        now: datetime,
    ) -> Optional[Match]:
        """Conditional status write; None when the row is no longer at `current`."""
        fields: Dict[str, Any] = {"status": target.value}
        stamp = STATUS_TIMESTAMPS.get(target)
        if stamp:
            fields[stamp] = now

        updated = await self.repository.update_fields(
            match_id, fields, expected_status=current.value
        )
        if updated is not None:
            await self._emit(MatchEventType.MATCH_STATUS_CHANGED, updated, previous_status=current)
        return updated

    async def get_match(self, match_id: str) -> Optional[Match]:
        return await self.repository.get(match_id)

    async def get_trip_matches(
        self, trip_id: str, limit: int = 20, offset: int = 0
    ) -> List[Match]:
        """Unexpired SUGGESTED matches for a trip, best first."""
        query = {
            "trip_id": trip_id,
            "status": MatchStatus.SUGGESTED.value,
            "expires_at": {"$gt": utc_now()},
        }
        return await self.repository.find(query, limit=limit, offset=offset)

    async def get_user_matches(
        self,
        trip_ids: List[str],
        filters: Optional[MatchFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Match]:
        """Matches across a user's trips. Defaults to SUGGESTED and VIEWED."""
        if not trip_ids:
            return []

        filters = filters or MatchFilters()
        query: Dict[str, Any] = {"trip_id": {"$in": trip_ids}}

        if filters.status:
            query["status"] = filters.status
        else:
            query["status"] = {"$in": DEFAULT_LISTED_STATUSES}
        if filters.min_compatibility_score is not None:
            query["compatibility_score"] = {"$gte": filters.min_compatibility_score}
        if filters.match_type:
            query["match_type"] = filters.match_type

        return await self.repository.find(query, limit=limit, offset=offset)

    async def delete_match(self, match_id: str) -> bool:
        return await self.repository.delete(match_id)

    async def expire_stale_matches(self) -> int:
        """Mark every non-terminal match past its expiry as EXPIRED."""
        count = await self.repository.expire_before(utc_now())
        if count:
            logger.info(f"Expired {count} stale matches")
        return count

    async def cleanup_expired_matches(self, older_than_days: Optional[int] = None) -> int:
        """Delete EXPIRED matches whose expiry is older than the retention window."""
        days = (
            older_than_days if older_than_days is not None
            else settings.expired_match_retention_days
        )
        count = await self.repository.delete_expired_before(utc_now() - timedelta(days=days))
        if count:
            logger.info(f"Deleted {count} expired matches older than {days} days")
        return count

    async def get_match_stats(self, trip_ids: List[str]) -> MatchStats:
        if not trip_ids:
            return MatchStats()
        return await self.repository.stats({"trip_id": {"$in": trip_ids}})

    # =========================================================================
    # Meeting points
    # =========================================================================

    async def find_optimal_meeting_points(
        self,
        route: RouteGeometry,
        passenger_location: LocationPoint,
        options: Optional[MeetingPointOptions] = None,
    ) -> List[MeetingPointAnalysis]:
        return await self.meeting_point_ranker.find_optimal_meeting_points(
            route, passenger_location, options
        )

    async def find_meeting_points_between(
        self,
        location_a: LocationPoint,
        location_b: LocationPoint,
        options: Optional[MeetingPointOptions] = None,
    ) -> List[MeetingPointAnalysis]:
        return await self.meeting_point_ranker.find_meeting_points_between(
            location_a, location_b, options
        )

    async def suggest_meeting_points(
        self,
        match_id: str,
        pickup_location: LocationPoint,
        dropoff_location: LocationPoint,
        options: Optional[MeetingPointOptions] = None,
    ) -> Match:
        """
        Store the best pickup and dropoff points on an accepted match.

        Pickup is ranked along the shared leg starting at pickup_location,
        dropoff along the same leg walked back from dropoff_location.
        """
        match = await self.repository.get(match_id)
        if match is None:
            raise MatchNotFound(match_id)
        if match.status != MatchStatus.ACCEPTED.value:
            raise ValueError(f"Match {match_id} is {match.status}, meeting points need ACCEPTED")

        pickups, dropoffs = await asyncio.gather(
            self.find_meeting_points_between(pickup_location, dropoff_location, options),
            self.find_meeting_points_between(dropoff_location, pickup_location, options),
        )

        fields: Dict[str, Any] = {}
        if pickups:
            fields["suggested_pickup_point"] = pickups[0].point.model_dump()
        if dropoffs:
            fields["suggested_dropoff_point"] = dropoffs[0].point.model_dump()
        if not fields:
            logger.warning(f"No meeting points found for match {match_id}")
            return match

        updated = await self.repository.update_fields(match_id, fields)
        if updated is None:
            raise MatchNotFound(match_id)
        return updated

    # =========================================================================
    # Events
    # =========================================================================

    async def _emit(
        self,
        event_type: MatchEventType,
        match: Match,
        previous_status: Optional[MatchStatus] = None,
    ) -> None:
        if self.event_sink is None:
            return

        event = MatchEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            match_id=match.match_id,
            trip_id=match.trip_id,
            matched_trip_id=match.matched_trip_id,
            status=match.status,
            previous_status=previous_status,
        )
        try:
            await self.event_sink.publish(event)
        except Exception as e:
            logger.error(f"Failed to publish {event_type.value} for {match.match_id}: {e}")
