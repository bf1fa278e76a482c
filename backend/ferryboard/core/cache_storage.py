"""Named response stores backing the cache coordinator.

A storage holds any number of named stores; each store maps a normalized
resource key to a stored response. Stores are created on first open and
deleted wholesale when their generation is retired.
"""

import base64
import datetime
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import orjson
import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class CacheStorageError(Exception):
    """A store could not be opened, listed or read."""


class CacheWriteError(CacheStorageError):
    """A response could not be persisted."""


@dataclass
class CachedResponse:
    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)
    source: str = "network"  # network | cache | offline | passthrough

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def with_source(self, source: str) -> "CachedResponse":
        return CachedResponse(self.status_code, self.content, dict(self.headers), source)

    def to_bytes(self) -> bytes:
        return orjson.dumps({
            "status_code": self.status_code,
            "headers": self.headers,
            "body": base64.b64encode(self.content).decode("ascii"),
            "stored_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        })

    @classmethod
    def from_bytes(cls, raw: bytes) -> "CachedResponse":
        data = orjson.loads(raw)
        return cls(
            status_code=int(data["status_code"]),
            content=base64.b64decode(data["body"]),
            headers=dict(data.get("headers") or {}),
            source="cache",
        )


class CacheStore(ABC):
    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def match(self, key: str) -> CachedResponse | None: ...

    @abstractmethod
    async def put(self, key: str, response: CachedResponse) -> None: ...

    @abstractmethod
    async def keys(self) -> list[str]: ...


class CacheStorage(ABC):
    @abstractmethod
    async def open(self, name: str) -> CacheStore: ...

    @abstractmethod
    async def keys(self) -> list[str]:
        """Names of all existing stores."""

    @abstractmethod
    async def delete(self, name: str) -> bool: ...

    async def match(self, key: str) -> CachedResponse | None:
        """Look ``key`` up across every store."""
        for name in await self.keys():
            store = await self.open(name)
            response = await store.match(key)
            if response is not None:
                return response
        return None


class MemoryCacheStore(CacheStore):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._entries: dict[str, bytes] = {}

    async def match(self, key: str) -> CachedResponse | None:
        raw = self._entries.get(key)
        return CachedResponse.from_bytes(raw) if raw is not None else None

    async def put(self, key: str, response: CachedResponse) -> None:
        self._entries[key] = response.to_bytes()

    async def keys(self) -> list[str]:
        return list(self._entries)


class MemoryCacheStorage(CacheStorage):
    """Process-local storage; contents are lost on restart."""

    def __init__(self) -> None:
        self._stores: dict[str, MemoryCacheStore] = {}

    async def open(self, name: str) -> CacheStore:
        if name not in self._stores:
            self._stores[name] = MemoryCacheStore(name)
        return self._stores[name]

    async def keys(self) -> list[str]:
        return list(self._stores)

    async def delete(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None


class RedisCacheStore(CacheStore):
    def __init__(self, name: str, redis: aioredis.Redis, hash_key: str) -> None:
        super().__init__(name)
        self._redis = redis
        self._hash_key = hash_key

    async def match(self, key: str) -> CachedResponse | None:
        try:
            raw = await self._redis.hget(self._hash_key, key)
        except RedisError as e:
            raise CacheStorageError(f"Failed to read {key} from {self.name}: {e}") from e
        return CachedResponse.from_bytes(raw) if raw is not None else None

    async def put(self, key: str, response: CachedResponse) -> None:
        try:
            await self._redis.hset(self._hash_key, key, response.to_bytes())
        except RedisError as e:
            raise CacheWriteError(f"Failed to store {key} in {self.name}: {e}") from e

    async def keys(self) -> list[str]:
        try:
            fields = await self._redis.hkeys(self._hash_key)
        except RedisError as e:
            raise CacheStorageError(f"Failed to list {self.name}: {e}") from e
        return [f.decode() if isinstance(f, bytes) else f for f in fields]


class RedisCacheStorage(CacheStorage):
    """Stores kept in Redis: one hash per store plus a set of store names."""

    def __init__(self, redis: aioredis.Redis, namespace: str = "ferryboard") -> None:
        self._redis = redis
        self._names_key = f"{namespace}:caches"
        self._prefix = f"{namespace}:cache:"

    def _hash_key(self, name: str) -> str:
        return self._prefix + name

    async def open(self, name: str) -> CacheStore:
        try:
            await self._redis.sadd(self._names_key, name)
        except RedisError as e:
            raise CacheStorageError(f"Failed to open cache {name}: {e}") from e
        return RedisCacheStore(name, self._redis, self._hash_key(name))

    async def keys(self) -> list[str]:
        try:
            names = await self._redis.smembers(self._names_key)
        except RedisError as e:
            raise CacheStorageError(f"Failed to list caches: {e}") from e
        return sorted(n.decode() if isinstance(n, bytes) else n for n in names)

    async def delete(self, name: str) -> bool:
        try:
            removed = await self._redis.srem(self._names_key, name)
            await self._redis.delete(self._hash_key(name))
        except RedisError as e:
            raise CacheStorageError(f"Failed to delete cache {name}: {e}") from e
        return bool(removed)
