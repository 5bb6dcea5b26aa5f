"""
Scheduler Package

Periodic match maintenance jobs.
"""

from ridematch.scheduler.jobs import ScheduledJob, MatchExpiryJob

__all__ = [
    "ScheduledJob",
    "MatchExpiryJob",
]
