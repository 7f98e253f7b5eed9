"""Pushes the fleet after each simulation tick to Redis and local WebSocket queues."""

import asyncio
import logging

import orjson
import redis.asyncio as aioredis

from app.config import settings
from app.core.simulator import TickReport
from app.schemas.vehicle import VehicleView

logger = logging.getLogger(__name__)

CHANNEL = "fleet:vehicles"
STATE_KEY = "fleet:state"
QUEUE_SIZE = 10


def encode_tick(vehicles: list[VehicleView], report: TickReport | None = None) -> bytes:
    """One update message: the tick's counters (if known) plus every vehicle."""
    return orjson.dumps({
        "type": "update",
        "tick": report.as_dict() if report is not None else None,
        "vehicles": [v.model_dump(mode="json") for v in vehicles],
    })


class Broadcaster:
    """Latest tick payload is kept in Redis (shared) and in memory (fallback)."""

    def __init__(self, redis_url: str | None = None) -> None:
        self._redis_url = redis_url or settings.redis_url
        self._redis: aioredis.Redis | None = None
        self._subscribers: set[asyncio.Queue] = set()
        self._latest: bytes | None = None
        self.last_tick: int | None = None

    async def connect(self) -> None:
        self._redis = aioredis.from_url(self._redis_url, decode_responses=False)

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()

    async def publish(self, vehicles: list[VehicleView], report: TickReport | None = None) -> bool:
        """Send one tick's fleet. Returns False for a tick already published."""
        if report is not None:
            if self.last_tick is not None and report.number <= self.last_tick:
                logger.debug("Tick %d already published, skipping", report.number)
                return False
            self.last_tick = report.number

        payload = encode_tick(vehicles, report)
        self._latest = payload
        await self._store_and_announce(payload)
        self._fan_out(payload)
        return True

    async def _store_and_announce(self, payload: bytes) -> None:
        if not self._redis:
            return
        try:
            async with self._redis.pipeline(transaction=False) as pipe:
                pipe.set(STATE_KEY, payload)
                pipe.publish(CHANNEL, payload)
                await pipe.execute()
        except Exception:
            # Local subscribers still get the update
            logger.exception("Failed to publish fleet update to Redis")

    def _fan_out(self, payload: bytes) -> None:
        lagging = set()
        for q in self._subscribers:
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                lagging.add(q)
        if lagging:
            logger.warning("Dropping %d WebSocket subscriber(s) more than %d ticks behind", len(lagging), QUEUE_SIZE)
            self._subscribers -= lagging

    async def get_current_state(self) -> bytes | None:
        if self._redis:
            try:
                data = await self._redis.get(STATE_KEY)
                if data:
                    return data
            except Exception:
                logger.exception("Failed to read fleet state from Redis")
        return self._latest

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
