"""PartitionOffsetTracker — commit watermark over out-of-order completions."""

from __future__ import annotations


class PartitionOffsetTracker:
    """Tracks which offsets of one partition have reached a terminal outcome.

    The committable offset is the lowest offset still in flight (parked for
    retry included), or one past the highest tracked offset once everything
    is done. Processing may run ahead of it; commits never do.
    """

    def __init__(self) -> None:
        self._pending: set[int] = set()
        self._highest: int | None = None
        self._committed: int | None = None

    def track(self, offset: int) -> None:
        self._pending.add(offset)
        if self._highest is None or offset > self._highest:
            self._highest = offset

    def complete(self, offset: int) -> None:
        self._pending.discard(offset)

    def is_pending(self, offset: int) -> bool:
        return offset in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def committed(self) -> int | None:
        return self._committed

    def committable(self) -> int | None:
        if self._pending:
            return min(self._pending)
        if self._highest is None:
            return None
        return self._highest + 1

    def next_commit(self) -> int | None:
        """Return the offset to commit if it moved past the last commit."""
        offset = self.committable()
        if offset is None:
            return None
        if self._committed is not None and offset <= self._committed:
            return None
        return offset

    def mark_committed(self, offset: int) -> None:
        if self._committed is None or offset > self._committed:
            self._committed = offset
