"""IMessageSource — port for pulling records from a partitioned log."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..envelope import InboundMessage, TopicPartition


@runtime_checkable
class IMessageSource(Protocol):
    """
    Port for a subscribed, partitioned message source (Kafka, in-memory, …).

    Auto-commit must be disabled: the consumption loop decides which offsets
    are committed. Committed offsets follow the Kafka convention (the offset
    of the next record to consume).
    """

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def getmany(
        self, timeout_ms: int = 1000, max_records: int | None = None
    ) -> dict[TopicPartition, list[InboundMessage]]:
        """Return the next batch of records grouped by topic-partition."""
        ...

    async def commit(self, offsets: dict[TopicPartition, int]) -> None:
        """Commit the given next-offsets. Raises MessageSourceError on failure."""
        ...

    def pause(self, *partitions: TopicPartition) -> None: ...

    def resume(self, *partitions: TopicPartition) -> None: ...

    async def health_check(self) -> bool: ...
