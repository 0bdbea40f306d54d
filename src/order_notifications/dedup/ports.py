"""IDedupStore — port for the processed-event store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime


@runtime_checkable
class IDedupStore(Protocol):
    """
    Tracks which event ids have been dispatched successfully.

    Entries expire after a retention window sized to exceed the maximum
    plausible redelivery lag. Presence means "dispatched at least once";
    absence does not prove the event is new.
    """

    async def has(self, event_id: str) -> bool:
        """Return True if *event_id* was marked processed and has not expired."""
        ...

    async def mark_processed(self, event_id: str, at: datetime) -> None:
        """Record that *event_id* was dispatched successfully at *at*."""
        ...

    async def evict_expired(self, now: datetime) -> int:
        """Drop entries older than the retention window; return how many."""
        ...

    async def health_check(self) -> bool:
        """Return True if the backing store is reachable."""
        ...
