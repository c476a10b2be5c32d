"""Cache service implementation.

Optimization results are transient, but the dashboard re-opens the same
optimization panel many times between edits. The API layer therefore
caches results per (tour, options) pair:

- LRUCache (in-process) answers repeat requests instantly
- RedisCacheService shares results across workers when REDIS_URL is set

A successful apply invalidates every cached entry for that tour. The
optimization engine itself never reads this cache.
"""

import hashlib
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import redis.asyncio as redis
from pydantic import BaseModel, Field, ValidationError

from app.models import OptimizationOptions, OptimizationResult, Warning
from app.utils.cache import LRUCache

logger = logging.getLogger(__name__)


class CacheService(ABC):
    """Abstract base class for cache services."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve cached value by key, or None if absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a JSON-serializable value with optional TTL."""
        pass

    @abstractmethod
    async def invalidate(self, pattern: str) -> int:
        """Invalidate entries matching a glob pattern; returns the count removed."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @staticmethod
    def build_optimization_key(tour_id: int, options: OptimizationOptions) -> str:
        """Generate the cache key for one tour and option set.

        The key format is: ``optimization:{tour_id}:{md5(options)}``

        Example:
            >>> CacheService.build_optimization_key(7, OptimizationOptions()).startswith("optimization:7:")
            True
        """
        serialized = json.dumps(options.model_dump(mode="json"), sort_keys=True)
        digest = hashlib.md5(serialized.encode("utf-8")).hexdigest()
        return f"optimization:{tour_id}:{digest}"

    @staticmethod
    def build_tour_pattern(tour_id: int) -> str:
        return f"optimization:{tour_id}:*"


class RedisCacheService(CacheService):
    """Redis-based implementation of the cache service.

    Values are stored as JSON strings with a TTL.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        default_ttl: int = 3600,
    ) -> None:
        self._redis_url = redis_url
        self._default_ttl = default_ttl
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        if self._client is None:
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_connected(self) -> redis.Redis:
        if self._client is None:
            await self.connect()
        return self._client  # type: ignore

    async def get(self, key: str) -> Any | None:
        client = await self._ensure_connected()
        value = await client.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        client = await self._ensure_connected()
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        serialized = value if isinstance(value, str) else json.dumps(value)
        await client.set(key, serialized, ex=ttl)

    async def invalidate(self, pattern: str) -> int:
        """Delete keys matching pattern using SCAN (safer than KEYS)."""
        client = await self._ensure_connected()
        deleted_count = 0
        cursor = 0
        while True:
            cursor, keys = await client.scan(cursor=cursor, match=pattern, count=100)
            if keys:
                deleted_count += await client.delete(*keys)
            if cursor == 0:
                break
        return deleted_count

    async def delete(self, key: str) -> bool:
        client = await self._ensure_connected()
        return await client.delete(key) > 0

    @property
    def default_ttl(self) -> int:
        return self._default_ttl


class CachedOptimization(BaseModel):
    """A cached optimization result with the warnings its run produced."""

    result: OptimizationResult
    warnings: list[Warning] = Field(default_factory=list)


class OptimizationResultCache:
    """Two-level result cache: in-process LRU in front of an optional shared cache.

    Entries carry the tour version they were computed at; callers compare
    it with the store before trusting a hit. Shared-cache failures are
    logged and treated as misses; a cache outage must never fail an
    optimization request.
    """

    def __init__(
        self,
        shared: Optional[CacheService] = None,
        ttl_seconds: int = 3600,
        max_entries: int = 200,
    ) -> None:
        self._local = LRUCache(max_size=max_entries, ttl_seconds=ttl_seconds)
        self._shared = shared
        self._ttl = ttl_seconds

    async def get(self, tour_id: int, options: OptimizationOptions) -> CachedOptimization | None:
        key = CacheService.build_optimization_key(tour_id, options)
        cached = self._local.get(key)
        if cached is None and self._shared is not None:
            try:
                cached = await self._shared.get(key)
            except Exception as exc:
                logger.info(f"[CACHE] Shared cache read failed: {exc}")
                cached = None
            if isinstance(cached, dict):
                self._local.set(key, cached)
        if not isinstance(cached, dict):
            return None
        try:
            return CachedOptimization.model_validate(cached)
        except ValidationError as exc:
            logger.info(f"[CACHE] Dropping unreadable entry {key}: {exc.error_count()} errors")
            return None

    async def set(
        self,
        tour_id: int,
        options: OptimizationOptions,
        result: OptimizationResult,
        warnings: Optional[list[Warning]] = None,
    ) -> None:
        key = CacheService.build_optimization_key(tour_id, options)
        payload = CachedOptimization(result=result, warnings=warnings or []).model_dump(mode="json")
        self._local.set(key, payload)
        if self._shared is not None:
            try:
                await self._shared.set(key, payload, ttl_seconds=self._ttl)
            except Exception as exc:
                logger.info(f"[CACHE] Shared cache write failed: {exc}")

    async def invalidate(self, tour_id: int) -> int:
        removed = self._local.invalidate_prefix(f"optimization:{tour_id}:")
        if self._shared is not None:
            try:
                removed += await self._shared.invalidate(CacheService.build_tour_pattern(tour_id))
            except Exception as exc:
                logger.info(f"[CACHE] Shared cache invalidation failed: {exc}")
        return removed

    async def close(self) -> None:
        self._local.clear()
        if isinstance(self._shared, RedisCacheService):
            await self._shared.disconnect()
