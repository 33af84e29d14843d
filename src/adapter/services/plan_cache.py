"""PlanCache implementations: Redis (shared) and in-memory (single process)"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional
import redis.asyncio as redis
from redis.exceptions import RedisError
from src.app.services.plan_cache import PlanCache

logger = logging.getLogger(__name__)

ACTIVE_PLANS_KEY = "subscription_plans:active"


class RedisPlanCache(PlanCache):
    """
    Active plan listing stored under one Redis key with a TTL

    Every API process reads the same key, so an invalidation made by one
    process is seen by all of them. Redis being unavailable degrades to a
    cache miss; listings are then served from the database.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 300, key: str = ACTIVE_PLANS_KEY):
        self.client = client
        self.ttl_seconds = int(ttl_seconds)
        self.key = key

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 300) -> "RedisPlanCache":
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, ttl_seconds=ttl_seconds)

    async def get_active_plans(self) -> Optional[List[Dict[str, Any]]]:
        try:
            raw = await self.client.get(self.key)
        except RedisError as e:
            logger.warning(f"Plan cache read failed, falling back to database: {e}")
            return None
        return json.loads(raw) if raw is not None else None

    async def set_active_plans(self, plans: List[Dict[str, Any]]) -> None:
        try:
            await self.client.set(self.key, json.dumps(plans), ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning(f"Plan cache write failed: {e}")

    async def invalidate(self) -> None:
        try:
            await self.client.delete(self.key)
        except RedisError as e:
            logger.error(f"Plan cache invalidation failed, stale plans may be served for up to {self.ttl_seconds}s: {e}")

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryPlanCache(PlanCache):
    """Process-local cache with a time-to-live, for single-process deployments and tests"""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._plans: Optional[List[Dict[str, Any]]] = None
        self._expires_at = 0.0

    async def get_active_plans(self) -> Optional[List[Dict[str, Any]]]:
        if self._plans is None or self._clock() >= self._expires_at:
            return None
        return list(self._plans)

    async def set_active_plans(self, plans: List[Dict[str, Any]]) -> None:
        self._plans = list(plans)
        self._expires_at = self._clock() + self.ttl_seconds

    async def invalidate(self) -> None:
        self._plans = None
        self._expires_at = 0.0


def create_plan_cache(backend: str, redis_url: Optional[str] = None, ttl_seconds: int = 300) -> PlanCache:
    """Pick the plan cache from the CACHE_BACKEND setting (redis | memory)"""
    if backend == "redis":
        if not redis_url:
            raise ValueError("REDIS_URL is required when CACHE_BACKEND is redis")
        logger.info("Plan cache backend: redis")
        return RedisPlanCache.from_url(redis_url, ttl_seconds=ttl_seconds)
    if backend == "memory":
        logger.info("Plan cache backend: memory")
        return InMemoryPlanCache(ttl_seconds=ttl_seconds)
    raise ValueError(f"Unknown cache backend: {backend}")
