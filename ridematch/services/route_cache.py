"""
Route Cache

Explicit key -> value cache with TTL for routing results, backed by Redis.
Passed into the routing layer by the caller; there is no module-level
instance. A cache failure never fails the routing call it wraps.
"""

import hashlib
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis


logger = logging.getLogger(__name__)


# =============================================================================
# Redis Key Naming Convention
# =============================================================================
#
# All keys are namespaced under "ridematch:route:" prefix.
#
# - ridematch:route:{kind}:{hash}   - JSON payload of a routing response
#
# kind is one of: route, distance, geocode, nearby
# hash is the first 24 hex chars of sha256 over the request parameters
#
# =============================================================================


class RouteCache:
    """Redis-backed TTL cache for routing collaborator responses."""

    def __init__(self, client: redis.Redis, ttl_seconds: int = 3600, prefix: str = "ridematch:route"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def make_key(self, kind: str, *parts: Any) -> str:
        """Deterministic key for a request."""
        composite = "|".join(str(p) for p in parts)
        key_hash = hashlib.sha256(composite.encode()).hexdigest()[:24]
        return f"{self.prefix}:{kind}:{key_hash}"

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(key)
        except Exception as e:
            logger.warning(f"Route cache read failed for {key}: {e}")
            return None
        if raw is None:
            logger.debug(f"Route cache miss: {key}")
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding unreadable route cache entry {key}")
            return None

    async def set(self, key: str, value: Any) -> None:
        try:
            await self.client.set(key, json.dumps(value), ex=self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Route cache write failed for {key}: {e}")
