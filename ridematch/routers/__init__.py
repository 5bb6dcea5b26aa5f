"""Ride Match Routers Package"""

from ridematch.routers import matches, meeting_points

__all__ = [
    "matches",
    "meeting_points",
]
