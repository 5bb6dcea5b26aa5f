"""
Scheduled Jobs for Ride Match

Periodic maintenance of the match collection with execution tracking.
"""

import logging
from typing import Optional

from ridematch.services.match_service import MatchOrchestrator
from ridematch.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class ScheduledJob:
    """Base class for scheduled jobs with error handling and logging."""

    def __init__(self, name: str):
        self.name = name
        self.execution_count = 0
        self.failure_count = 0
        self.last_execution = None
        self.last_error: Optional[str] = None

    async def execute(self):
        """Execute the job, recording failures instead of raising them."""
        self.execution_count += 1
        start_time = utc_now()

        try:
            logger.info(f"[{self.name}] Starting execution #{self.execution_count}")
            await self._run()
            self.last_execution = utc_now()
            duration = (self.last_execution - start_time).total_seconds()
            logger.info(f"[{self.name}] Completed successfully in {duration:.2f}s")

        except Exception as e:
            self.failure_count += 1
            self.last_error = str(e)
            logger.error(f"[{self.name}] Failed: {e}", exc_info=True)

            if self.failure_count >= 3:
                logger.critical(
                    f"[{self.name}] CRITICAL: Failed {self.failure_count} times. "
                    f"Last error: {e}"
                )

    async def _run(self):
        """Override this method in subclasses."""
        raise NotImplementedError

    def status(self) -> dict:
        return {
            "name": self.name,
            "execution_count": self.execution_count,
            "failure_count": self.failure_count,
            "last_execution": self.last_execution.isoformat() if self.last_execution else None,
            "last_error": self.last_error,
        }


class MatchExpiryJob(ScheduledJob):
    """
    Expire stale matches and purge long-expired rows.

    Frequency: every match_expiry_job_minutes
    """

    def __init__(self, orchestrator: MatchOrchestrator, retention_days: Optional[int] = None):
        super().__init__("MatchExpiry")
        self.orchestrator = orchestrator
        self.retention_days = retention_days

    async def _run(self):
        expired = await self.orchestrator.expire_stale_matches()
        deleted = await self.orchestrator.cleanup_expired_matches(self.retention_days)
        logger.info(f"[{self.name}] Expired {expired}, deleted {deleted}")
