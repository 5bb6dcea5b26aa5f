"""
Match Event Service

Outbound channel for match lifecycle events. The orchestrator only emits;
delivery to push/in-app notification systems is a separate consumer.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis

from ridematch.models.match import MatchEvent


logger = logging.getLogger(__name__)


class MatchEventSink(ABC):
    """Receives match lifecycle events."""

    @abstractmethod
    async def publish(self, event: MatchEvent) -> None:
        """Hand the event to the downstream channel."""


class QueueEventSink(MatchEventSink):
    """
    In-process sink backed by an asyncio.Queue.

    A full bounded queue drops the event with a warning rather than
    blocking the producer.
    """

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue = queue if queue is not None else asyncio.Queue()

    async def publish(self, event: MatchEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping {event.event_type} for {event.match_id}")


class RedisEventSink(MatchEventSink):
    """Publishes events as JSON on a Redis pub/sub channel."""

    def __init__(self, client: redis.Redis, channel: str):
        self.client = client
        self.channel = channel

    async def publish(self, event: MatchEvent) -> None:
        await self.client.publish(self.channel, event.model_dump_json())
