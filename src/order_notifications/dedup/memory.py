"""InMemoryDedupStore — time-bounded processed-id map for a single process."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from .ports import IDedupStore

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDedupStore(IDedupStore):
    """Deduplicate by event_id with time-based expiry (not size-based LRU).

    Expired entries are invisible to ``has`` immediately and are removed by
    ``evict_expired``.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ttl = ttl
        self._clock = clock or _utcnow
        self._entries: dict[str, datetime] = {}

    async def has(self, event_id: str) -> bool:
        processed_at = self._entries.get(event_id)
        if processed_at is None:
            return False
        return self._clock() - processed_at < self._ttl

    async def mark_processed(self, event_id: str, at: datetime) -> None:
        self._entries[event_id] = at

    async def evict_expired(self, now: datetime) -> int:
        cutoff = now - self._ttl
        expired = [k for k, at in self._entries.items() if at <= cutoff]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired dedup entries")
        return len(expired)

    async def health_check(self) -> bool:
        return True

    def clear(self) -> None:
        """Drop all entries (for testing)."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
