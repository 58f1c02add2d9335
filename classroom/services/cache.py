"""Read-through cache for derived progress views.

Flow:  ProgressAggregator -> cache -> miss -> store -> populate -> return
                             cache -> hit  -> return (store untouched)

Two complementary invalidation strategies:

  1. TTL (PROGRESS_CACHE_TTL): every entry auto-expires.  This is the
     safety net if an invalidation is ever missed.

  2. Explicit invalidation: after each committed write that changes a
     student's memberships or stats the ReconciliationService bumps
     ``progress-generation:{student_id}`` and deletes
     ``progress:{student_id}:*``.

Each cached view carries the generation read before it was computed.
A view whose generation no longer matches is a miss, so a fill that
raced a write can never outlive it.

Only derived data lives here.  Losing the cache costs a recomputation.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID


def progress_key(student_id: UUID, view: str) -> str:
    return f"progress:{student_id}:{view}"


def progress_pattern(student_id: UUID) -> str:
    return f"progress:{student_id}:*"


def progress_generation_key(student_id: UUID) -> str:
    # Outside progress_pattern(), so invalidation never resets it.
    return f"progress-generation:{student_id}"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern (e.g., 'progress:<id>:*')."""
        ...

    async def incr(self, key: str) -> int:
        """Atomically increment an integer counter, creating it at 1."""
        ...


class InMemoryCacheService:
    """In-memory cache for dev and tests; no TTL enforcement.

    Each test gets a fresh instance through the service container.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]

    async def incr(self, key: str) -> int:
        value = int(self._store.get(key, "0")) + 1
        self._store[key] = str(value)
        return value


class RedisCacheService:
    """Redis-backed cache, shared across all API instances."""

    _PREFIX = "classroom:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: cursor-based, so Redis keeps serving other
        # clients between batches.
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break

    async def incr(self, key: str) -> int:
        return await self._redis.incr(f"{self._PREFIX}{key}")
