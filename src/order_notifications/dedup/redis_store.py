"""RedisDedupStore — dedup entries shared across replicas, expired by Redis TTL."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from ..exceptions import DedupStoreUnavailableError
from .ports import IDedupStore

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisDedupStore(IDedupStore):
    """
    Redis implementation of IDedupStore.

    Each processed id is a key ``<prefix><event_id>`` holding the processing
    timestamp, written with ``EX`` so Redis expires it after the TTL.
    """

    def __init__(
        self,
        redis_client: Redis,
        *,
        key_prefix: str = "notifications:dedup:",
        ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._ttl_seconds = max(1, int(ttl.total_seconds()))

    def _key(self, event_id: str) -> str:
        return f"{self._key_prefix}{event_id}"

    async def has(self, event_id: str) -> bool:
        try:
            return bool(await self._redis.exists(self._key(event_id)))
        except RedisError as e:
            raise DedupStoreUnavailableError(
                f"Redis dedup lookup failed for {event_id}: {e}"
            ) from e

    async def mark_processed(self, event_id: str, at: datetime) -> None:
        try:
            await self._redis.set(
                self._key(event_id), at.isoformat(), ex=self._ttl_seconds
            )
        except RedisError as e:
            raise DedupStoreUnavailableError(
                f"Redis dedup write failed for {event_id}: {e}"
            ) from e

    async def evict_expired(self, now: datetime) -> int:  # noqa: ARG002
        """No-op: Redis expires keys on its own."""
        return 0

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.warning(f"Redis dedup health check failed: {e}")
            return False
