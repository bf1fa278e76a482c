"""Client notifications: update-available and other coordinator messages.

Messages go to a Redis channel for other backend processes and straight to
the WebSocket queues of clients connected to this one. The latest message
is kept so a board that connects after a version change still hears about it.
"""

import asyncio
import logging

import orjson
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ferryboard.config import settings

logger = logging.getLogger(__name__)

CHANNEL = "ferryboard:clients"
LAST_MESSAGE_KEY = "ferryboard:last_message"

QUEUE_SIZE = 10


class Broadcaster:
    def __init__(self) -> None:
        self._redis: aioredis.Redis | None = None
        self._clients: set[asyncio.Queue] = set()
        self._last: bytes | None = None

    async def connect(self, redis: aioredis.Redis | None = None) -> None:
        self._redis = redis or aioredis.from_url(settings.redis_url, decode_responses=False)

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def publish(self, message: dict) -> int:
        """Notify every client; returns how many local boards received it."""
        payload = orjson.dumps(message)
        self._last = payload
        if self._redis:
            try:
                await self._redis.set(LAST_MESSAGE_KEY, payload)
                await self._redis.publish(CHANNEL, payload)
            except RedisError:
                logger.exception("Could not publish %s to Redis", message.get("type"))
        return self._deliver(payload)

    def _deliver(self, payload: bytes) -> int:
        # boards that stopped reading are dropped
        stalled = {q for q in self._clients if q.full()}
        self._clients -= stalled
        for q in self._clients:
            q.put_nowait(payload)
        if stalled:
            logger.info("Dropped %d stalled client(s)", len(stalled))
        return len(self._clients)

    async def get_last_message(self) -> bytes | None:
        if self._redis:
            try:
                stored = await self._redis.get(LAST_MESSAGE_KEY)
            except RedisError:
                logger.exception("Could not read last message from Redis")
            else:
                if stored is not None:
                    return stored
        return self._last

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._clients.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._clients.discard(q)
