"""
Ride Match Database Module

MongoDB and Redis connection management.
"""

from typing import Optional

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ridematch.config import settings


# =============================================================================
# MongoDB Connection
# =============================================================================

class MongoDB:
    """MongoDB connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None


mongo = MongoDB()


async def create_match_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create indexes the match collection relies on."""
    await db.matches.create_index("match_id", unique=True)

    # The pair uniqueness invariant lives here, not in application code
    await db.matches.create_index(
        [("trip_id", 1), ("matched_trip_id", 1)],
        unique=True,
        name="unique_trip_pair",
    )

    await db.matches.create_index("status")
    await db.matches.create_index("expires_at")

    # Listing a trip's suggestions ordered by score
    await db.matches.create_index([
        ("trip_id", 1),
        ("status", 1),
        ("compatibility_score", -1)
    ])


async def init_mongodb():
    """Initialize MongoDB connection and create indexes."""
    # Match expiry comparisons need aware datetimes back from the driver
    mongo.client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
    mongo.db = mongo.client[settings.mongodb_database]
    await create_match_indexes(mongo.db)


async def close_mongodb():
    """Close MongoDB connection."""
    if mongo.client:
        mongo.client.close()


def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    if mongo.db is None:
        raise RuntimeError("Database not initialized")
    return mongo.db


# =============================================================================
# Redis Connection
# =============================================================================

class RedisClient:
    """Redis connection manager."""

    client: Optional[redis.Redis] = None


redis_client = RedisClient()


async def init_redis():
    """Initialize Redis connection."""
    redis_client.client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=30,
        socket_connect_timeout=5,
        retry_on_timeout=True,
        socket_keepalive=True
    )


async def close_redis():
    """Close Redis connection."""
    if redis_client.client:
        await redis_client.client.close()


def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if redis_client.client is None:
        raise RuntimeError("Redis not initialized")
    return redis_client.client


# =============================================================================
# Combined Initialization
# =============================================================================

async def init_db():
    """Initialize all database connections."""
    await init_mongodb()
    await init_redis()


async def close_db():
    """Close all database connections."""
    await close_mongodb()
    await close_redis()
