"""
Match Repository

MongoDB persistence for match rows. The (trip_id, matched_trip_id)
uniqueness invariant is enforced by the unique_trip_pair index; a conflict
surfaces as DuplicateMatch.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ridematch.database import get_db
from ridematch.exceptions import DuplicateMatch
from ridematch.models.match import Match, MatchStats, MatchStatus, TERMINAL_STATUSES


class MatchRepository:
    """CRUD and query access to the matches collection."""

    def __init__(self, db: Optional[AsyncIOMotorDatabase] = None):
        self._db = db

    @property
    def collection(self):
        db = self._db if self._db is not None else get_db()
        return db.matches

    async def insert(self, match: Match) -> Match:
        """Insert a match. Raises DuplicateMatch if the pair already exists."""
        try:
            await self.collection.insert_one(match.model_dump())
        except DuplicateKeyError as e:
            raise DuplicateMatch(match.trip_id, match.matched_trip_id) from e
        return match

    async def get(self, match_id: str) -> Optional[Match]:
        doc = await self.collection.find_one({"match_id": match_id}, {"_id": 0})
        return Match.model_validate(doc) if doc else None

    async def get_by_pair(self, trip_id: str, matched_trip_id: str) -> Optional[Match]:
        doc = await self.collection.find_one(
            {"trip_id": trip_id, "matched_trip_id": matched_trip_id}, {"_id": 0}
        )
        return Match.model_validate(doc) if doc else None

    async def update_fields(
        self,
        match_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = None,
    ) -> Optional[Match]:
        """
        Set fields on a match and return the updated row.

        With expected_status the write only applies while the row still has
        that status; None is returned when it has moved on.
        """
        query: Dict[str, Any] = {"match_id": match_id}
        if expected_status is not None:
            query["status"] = expected_status

        doc = await self.collection.find_one_and_update(
            query,
            {"$set": fields},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        return Match.model_validate(doc) if doc else None

    async def find(
        self,
        query: Dict[str, Any],
        limit: int = 20,
        offset: int = 0,
    ) -> List[Match]:
        """Filtered, paginated query ordered by compatibility score."""
        cursor = (
            self.collection.find(query, {"_id": 0})
            .sort("compatibility_score", -1)
            .skip(offset)
            .limit(limit)
        )
        return [Match.model_validate(doc) async for doc in cursor]

    async def count(self, query: Dict[str, Any]) -> int:
        return await self.collection.count_documents(query)

    async def delete(self, match_id: str) -> bool:
        result = await self.collection.delete_one({"match_id": match_id})
        return result.deleted_count > 0

    async def expire_before(self, now: datetime) -> int:
        """Mark every non-terminal match past its expiry as EXPIRED."""
        result = await self.collection.update_many(
            {
                "expires_at": {"$lt": now},
                "status": {"$nin": [s.value for s in TERMINAL_STATUSES]},
            },
            {"$set": {"status": MatchStatus.EXPIRED.value}},
        )
        return result.modified_count

    async def delete_expired_before(self, cutoff: datetime) -> int:
        """Hard-delete expired matches whose expiry is older than cutoff."""
        result = await self.collection.delete_many({
            "status": MatchStatus.EXPIRED.value,
            "expires_at": {"$lt": cutoff},
        })
        return result.deleted_count

    async def stats(self, query: Dict[str, Any]) -> MatchStats:
        pipeline = [
            {"$match": query},
            {"$group": {
                "_id": None,
                "total": {"$sum": 1},
                "viewed": {"$sum": {"$cond": [{"$ifNull": ["$viewed_at", False]}, 1, 0]}},
                "contacted": {"$sum": {"$cond": [{"$ifNull": ["$contacted_at", False]}, 1, 0]}},
                "accepted": {"$sum": {"$cond": [
                    {"$eq": ["$status", MatchStatus.ACCEPTED.value]}, 1, 0
                ]}},
                "avg_score": {"$avg": "$compatibility_score"},
            }},
        ]
        docs = await self.collection.aggregate(pipeline).to_list(length=1)
        if not docs:
            return MatchStats()

        doc = docs[0]
        return MatchStats(
            total=doc.get("total", 0),
            viewed=doc.get("viewed", 0),
            contacted=doc.get("contacted", 0),
            accepted=doc.get("accepted", 0),
            avg_compatibility_score=doc.get("avg_score") or 0.0,
        )
