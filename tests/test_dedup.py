"""Tests for dedup stores."""

from __future__ import annotations

import logging
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from order_notifications.dedup import IDedupStore, InMemoryDedupStore
from order_notifications.dedup.redis_store import RedisDedupStore
from order_notifications.exceptions import DedupStoreUnavailableError


class TestInMemoryDedupStore:
    def test_implements_port(self) -> None:
        assert isinstance(InMemoryDedupStore(), IDedupStore)

    @pytest.mark.asyncio
    async def test_mark_then_has(self, dedup_store, clock) -> None:
        assert await dedup_store.has("e1") is False
        await dedup_store.mark_processed("e1", clock())
        assert await dedup_store.has("e1") is True

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self, clock) -> None:
        store = InMemoryDedupStore(ttl=timedelta(minutes=10), clock=clock)
        await store.mark_processed("e1", clock())

        clock.advance(9 * 60)
        assert await store.has("e1") is True
        clock.advance(2 * 60)
        assert await store.has("e1") is False

    @pytest.mark.asyncio
    async def test_evict_expired(self, clock) -> None:
        store = InMemoryDedupStore(ttl=timedelta(seconds=60), clock=clock)
        await store.mark_processed("old", clock())
        clock.advance(120)
        await store.mark_processed("new", clock())

        assert await store.evict_expired(clock()) == 1
        assert len(store) == 1
        assert await store.has("new") is True

    @pytest.mark.asyncio
    async def test_clear(self, dedup_store, clock) -> None:
        await dedup_store.mark_processed("e1", clock())
        dedup_store.clear()
        assert await dedup_store.has("e1") is False


@pytest.fixture
def redis_client() -> MagicMock:
    client = MagicMock()
    client.exists = AsyncMock(return_value=0)
    client.set = AsyncMock(return_value=True)
    client.ping = AsyncMock(return_value=True)
    return client


class TestRedisDedupStore:
    @pytest.mark.asyncio
    async def test_has_checks_prefixed_key(self, redis_client) -> None:
        redis_client.exists.return_value = 1
        store = RedisDedupStore(redis_client, key_prefix="test:")

        assert await store.has("e1") is True
        redis_client.exists.assert_awaited_once_with("test:e1")

    @pytest.mark.asyncio
    async def test_mark_processed_sets_ttl(self, redis_client, clock) -> None:
        store = RedisDedupStore(redis_client, ttl=timedelta(hours=1))

        await store.mark_processed("e1", clock())

        redis_client.set.assert_awaited_once_with(
            "notifications:dedup:e1", clock().isoformat(), ex=3600
        )

    @pytest.mark.asyncio
    async def test_redis_errors_become_infrastructure_errors(
        self, redis_client, clock
    ) -> None:
        redis_client.exists.side_effect = RedisConnectionError("refused")
        redis_client.set.side_effect = RedisConnectionError("refused")
        store = RedisDedupStore(redis_client)

        with pytest.raises(DedupStoreUnavailableError):
            await store.has("e1")
        with pytest.raises(DedupStoreUnavailableError):
            await store.mark_processed("e1", clock())

    @pytest.mark.asyncio
    async def test_evict_is_left_to_redis(self, redis_client, clock) -> None:
        assert await RedisDedupStore(redis_client).evict_expired(clock()) == 0

    @pytest.mark.asyncio
    async def test_health_check(self, redis_client) -> None:
        store = RedisDedupStore(redis_client)
        assert await store.health_check() is True

        redis_client.ping.side_effect = RedisConnectionError("down")
        assert await store.health_check() is False

    @pytest.mark.asyncio
    async def test_failed_health_check_logs_the_error(self, redis_client, caplog) -> None:
        redis_client.ping.side_effect = RedisConnectionError("connection refused")

        with caplog.at_level(logging.WARNING, logger="order_notifications.dedup.redis_store"):
            assert await RedisDedupStore(redis_client).health_check() is False

        assert any("connection refused" in r.getMessage() for r in caplog.records)
