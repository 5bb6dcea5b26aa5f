"""
Tests for Scheduled Jobs
"""

from datetime import timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock

from ridematch.models.match import Match, MatchType
from ridematch.scheduler.jobs import MatchExpiryJob
from ridematch.services.match_service import MatchOrchestrator
from ridematch.utils.timezone_utils import utc_now


class TestMatchExpiryJob:
    """Tests for MatchExpiryJob."""

    @pytest.fixture
    def orchestrator(self):
        orchestrator = MagicMock()
        orchestrator.expire_stale_matches = AsyncMock(return_value=3)
        orchestrator.cleanup_expired_matches = AsyncMock(return_value=1)
        return orchestrator

    @pytest.mark.asyncio
    async def test_expires_then_cleans_up(self, orchestrator):
        job = MatchExpiryJob(orchestrator, retention_days=7)

        await job.execute()

        orchestrator.expire_stale_matches.assert_awaited_once()
        orchestrator.cleanup_expired_matches.assert_awaited_once_with(7)
        assert job.execution_count == 1
        assert job.failure_count == 0
        assert job.last_execution is not None

    @pytest.mark.asyncio
    async def test_failures_are_recorded_not_raised(self, orchestrator):
        orchestrator.expire_stale_matches.side_effect = RuntimeError("mongo down")
        job = MatchExpiryJob(orchestrator)

        await job.execute()
        await job.execute()

        assert job.execution_count == 2
        assert job.failure_count == 2
        assert job.last_error == "mongo down"
        assert job.status()["failure_count"] == 2

    @pytest.mark.asyncio
    async def test_expires_real_matches(self, orchestrator_with_store):
        orchestrator, repository = orchestrator_with_store
        job = MatchExpiryJob(orchestrator)

        await job.execute()

        assert job.failure_count == 0
        assert all(row["status"] == "EXPIRED" for row in repository.rows.values())


@pytest.fixture
def orchestrator_with_store(routing, repository):
    """Orchestrator over the in-memory store, with two overdue matches."""
    past = utc_now() - timedelta(days=1)
    for i in range(2):
        repository.rows[f"m{i}"] = Match(
            match_id=f"m{i}",
            trip_id=f"t{i}",
            matched_trip_id=f"u{i}",
            compatibility_score=0.5,
            match_type=MatchType.PARTIAL_OVERLAP,
            expires_at=past,
        ).model_dump()
    return MatchOrchestrator(routing, repository=repository), repository
