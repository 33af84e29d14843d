"""Unit tests for the plan cache backends"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock
from redis.exceptions import ConnectionError as RedisConnectionError

from src.adapter.services.plan_cache import (
    ACTIVE_PLANS_KEY,
    InMemoryPlanCache,
    RedisPlanCache,
    create_plan_cache,
)

PLANS = [{"id": "plan_1", "name": "Pro Monthly", "price": 2500}]


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.aclose = AsyncMock()
    return client


@pytest.mark.asyncio
class TestRedisPlanCache:

    async def test_set_stores_json_with_ttl(self, redis_client):
        cache = RedisPlanCache(redis_client, ttl_seconds=120)

        await cache.set_active_plans(PLANS)

        redis_client.set.assert_awaited_once_with(ACTIVE_PLANS_KEY, json.dumps(PLANS), ex=120)

    async def test_get_decodes_stored_listing(self, redis_client):
        redis_client.get = AsyncMock(return_value=json.dumps(PLANS))

        assert await RedisPlanCache(redis_client).get_active_plans() == PLANS
        redis_client.get.assert_awaited_once_with(ACTIVE_PLANS_KEY)

    async def test_missing_key_is_a_miss(self, redis_client):
        assert await RedisPlanCache(redis_client).get_active_plans() is None

    async def test_invalidate_deletes_shared_key(self, redis_client):
        """Given two API processes on one Redis, when one invalidates, then the key is gone for both"""
        # Arrange
        store = {}

        async def _set(key, value, ex=None):
            store[key] = value

        async def _get(key):
            return store.get(key)

        async def _delete(key):
            store.pop(key, None)

        redis_client.set = AsyncMock(side_effect=_set)
        redis_client.get = AsyncMock(side_effect=_get)
        redis_client.delete = AsyncMock(side_effect=_delete)
        process_a = RedisPlanCache(redis_client)
        process_b = RedisPlanCache(redis_client)
        await process_b.set_active_plans(PLANS)

        # Act
        await process_a.invalidate()

        # Assert
        assert await process_b.get_active_plans() is None

    async def test_unavailable_redis_reads_as_miss(self, redis_client):
        redis_client.get = AsyncMock(side_effect=RedisConnectionError("connection refused"))

        assert await RedisPlanCache(redis_client).get_active_plans() is None

    async def test_unavailable_redis_does_not_fail_writes(self, redis_client):
        redis_client.set = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        redis_client.delete = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        cache = RedisPlanCache(redis_client)

        await cache.set_active_plans(PLANS)
        await cache.invalidate()

        redis_client.delete.assert_awaited_once()

    async def test_close_releases_client(self, redis_client):
        await RedisPlanCache(redis_client).close()

        redis_client.aclose.assert_awaited_once()


@pytest.mark.asyncio
class TestInMemoryPlanCache:

    async def test_empty_cache_misses(self):
        assert await InMemoryPlanCache().get_active_plans() is None

    async def test_returns_stored_plans_within_ttl(self):
        clock = FakeClock()
        cache = InMemoryPlanCache(ttl_seconds=60, clock=clock)
        await cache.set_active_plans(PLANS)

        clock.now += 59

        assert await cache.get_active_plans() == PLANS

    async def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = InMemoryPlanCache(ttl_seconds=60, clock=clock)
        await cache.set_active_plans(PLANS)

        clock.now += 60

        assert await cache.get_active_plans() is None

    async def test_invalidate_clears_entry(self):
        cache = InMemoryPlanCache()
        await cache.set_active_plans(PLANS)

        await cache.invalidate()

        assert await cache.get_active_plans() is None

    async def test_returned_list_is_a_copy(self):
        cache = InMemoryPlanCache()
        await cache.set_active_plans(["basic"])

        (await cache.get_active_plans()).append("injected")

        assert await cache.get_active_plans() == ["basic"]


class TestCreatePlanCache:
    def test_memory_backend(self):
        assert isinstance(create_plan_cache("memory"), InMemoryPlanCache)

    def test_redis_backend(self):
        cache = create_plan_cache("redis", redis_url="redis://localhost:6379/0", ttl_seconds=30)

        assert isinstance(cache, RedisPlanCache)
        assert cache.ttl_seconds == 30

    def test_redis_backend_requires_url(self):
        with pytest.raises(ValueError):
            create_plan_cache("redis", redis_url=None)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_plan_cache("memcached")
