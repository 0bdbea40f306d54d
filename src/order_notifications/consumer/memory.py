"""InMemoryMessageSource — partitioned log for tests and local runs."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import TYPE_CHECKING, Any

from ..envelope import InboundMessage
from ..exceptions import MessageSourceError

if TYPE_CHECKING:
    from ..envelope import TopicPartition

logger = logging.getLogger(__name__)


class InMemoryMessageSource:
    """
    Append-only per-partition logs with a consumer position and commits.

    ``rewind_to_committed()`` simulates a consumer restart: the position of
    every partition falls back to its committed offset, so uncommitted
    records are delivered again.
    """

    def __init__(self) -> None:
        self._logs: dict[TopicPartition, list[InboundMessage]] = {}
        self._positions: dict[TopicPartition, int] = {}
        self.committed: dict[TopicPartition, int] = {}
        self.commits: list[dict[TopicPartition, int]] = []
        self._paused: set[TopicPartition] = set()
        self._available = asyncio.Event()
        self.started = False
        self.healthy = True
        self.fail_commits = 0

    def append(
        self,
        topic: str,
        partition: int,
        value: bytes | str | dict[str, Any],
        *,
        key: bytes | None = None,
    ) -> InboundMessage:
        """Append a record; dict values are JSON-encoded."""
        if isinstance(value, dict):
            value = json.dumps(value, default=str)
        if isinstance(value, str):
            value = value.encode("utf-8")
        tp = (topic, partition)
        log = self._logs.setdefault(tp, [])
        message = InboundMessage(
            topic=topic,
            partition=partition,
            offset=len(log),
            value=value,
            key=key,
            timestamp_ms=int(time.time() * 1000),
        )
        log.append(message)
        self._positions.setdefault(tp, 0)
        self._available.set()
        return message

    def log(self, tp: TopicPartition) -> list[InboundMessage]:
        return list(self._logs.get(tp, []))

    def position(self, tp: TopicPartition) -> int:
        return self._positions.get(tp, 0)

    def lag(self, tp: TopicPartition) -> int:
        return len(self._logs.get(tp, [])) - self.committed.get(tp, 0)

    def paused(self) -> set[TopicPartition]:
        return set(self._paused)

    def rewind_to_committed(self) -> None:
        for tp in self._logs:
            self._positions[tp] = self.committed.get(tp, 0)
        self._paused.clear()
        self._available.set()

    # ── IMessageSource ───────────────────────────────────────────────

    async def start(self) -> None:
        self.started = True
        logger.debug("In-memory message source started")

    async def stop(self) -> None:
        self.started = False
        logger.debug("In-memory message source stopped")

    def _fetch(self, max_records: int | None) -> dict[TopicPartition, list[InboundMessage]]:
        batch: dict[TopicPartition, list[InboundMessage]] = {}
        budget = max_records
        if budget is None:
            budget = sum(len(log) for log in self._logs.values())
        for tp, log in self._logs.items():
            if tp in self._paused or budget <= 0:
                continue
            start = self._positions.get(tp, 0)
            take = log[start : start + budget]
            if take:
                batch[tp] = take
                self._positions[tp] = start + len(take)
                budget -= len(take)
        return batch

    async def getmany(
        self, timeout_ms: int = 1000, max_records: int | None = None
    ) -> dict[TopicPartition, list[InboundMessage]]:
        if not self.started:
            raise MessageSourceError("source is not started")
        batch = self._fetch(max_records)
        if batch:
            return batch
        self._available.clear()
        try:
            await asyncio.wait_for(self._available.wait(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            return {}
        return self._fetch(max_records)

    async def commit(self, offsets: dict[TopicPartition, int]) -> None:
        if self.fail_commits > 0:
            self.fail_commits -= 1
            raise MessageSourceError("commit rejected")
        self.commits.append(dict(offsets))
        for tp, offset in offsets.items():
            if offset > self.committed.get(tp, -1):
                self.committed[tp] = offset

    def pause(self, *partitions: TopicPartition) -> None:
        self._paused.update(partitions)

    def resume(self, *partitions: TopicPartition) -> None:
        self._paused.difference_update(partitions)
        if partitions:
            self._available.set()

    async def health_check(self) -> bool:
        return self.healthy and self.started
