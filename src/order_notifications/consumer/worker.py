"""PartitionWorker — sequential processing of one topic-partition."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..envelope import EventEnvelope
from ..exceptions import DeadLetterWriteError, InfrastructureError
from ..processor import Outcome

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ..envelope import InboundMessage, TopicPartition
    from ..processor import EventProcessor, ProcessResult
    from ..retry import RetryPolicy
    from .delay_queue import DelayedRetryQueue
    from .offsets import PartitionOffsetTracker
    from .ports import IMessageSource

logger = logging.getLogger(__name__)


class PartitionWorker:
    """Owns the queue of one partition and feeds it to the event processor.

    Items are handled one at a time in arrival order. Retryable failures are
    parked in the delay queue and come back through :meth:`enqueue` once due.
    InfrastructureError, or any unexpected exception, pauses this worker (with
    backoff) and retries the same item; other partitions are unaffected.
    """

    def __init__(
        self,
        topic_partition: TopicPartition,
        processor: EventProcessor,
        tracker: PartitionOffsetTracker,
        delay_queue: DelayedRetryQueue,
        source: IMessageSource,
        *,
        infrastructure_backoff: RetryPolicy,
        on_terminal: Callable[[TopicPartition], Awaitable[None]],
        max_queued: int = 500,
    ) -> None:
        self.topic_partition = topic_partition
        self._processor = processor
        self._tracker = tracker
        self._delay_queue = delay_queue
        self._source = source
        self._infrastructure_backoff = infrastructure_backoff
        self._on_terminal = on_terminal
        self._max_queued = max(1, max_queued)
        self._queue: asyncio.Queue[InboundMessage | EventEnvelope | None] = (
            asyncio.Queue()
        )
        self._paused = False
        self._stopping = False
        self._in_flight = False
        self.task: asyncio.Task[None] | None = None
        self.processed = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    @property
    def paused(self) -> bool:
        return self._paused

    def start(self) -> None:
        tp = self.topic_partition
        self.task = asyncio.create_task(
            self._run(), name=f"partition-worker-{tp[0]}-{tp[1]}"
        )

    def enqueue(self, item: InboundMessage | EventEnvelope) -> None:
        """Queue a new record (tracked) or a due retry (already tracked)."""
        if self._stopping:
            return
        if not isinstance(item, EventEnvelope):
            self._tracker.track(item.offset)
        self._queue.put_nowait(item)
        if not self._paused and self._queue.qsize() >= self._max_queued:
            self._paused = True
            self._source.pause(self.topic_partition)
            logger.debug(f"Paused {self.topic_partition}: {self._queue.qsize()} queued")

    def stop_accepting(self) -> None:
        """Finish the in-flight item, then exit; queued items are left uncommitted."""
        self._stopping = True
        self._queue.put_nowait(None)

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            if item is None or self._stopping:
                break
            self._maybe_resume()
            self._in_flight = True
            try:
                await self._handle(item)
            except Exception:  # noqa: BLE001
                # The worker outlives a bad item; its offset stays pending
                logger.exception(
                    f"Unexpected failure on {self.topic_partition} offset {item.offset}; "
                    "left uncommitted"
                )
            finally:
                self._in_flight = False
        logger.debug(f"Worker for {self.topic_partition} exited")

    def _maybe_resume(self) -> None:
        if self._paused and self._queue.qsize() <= self._max_queued // 2:
            self._paused = False
            self._source.resume(self.topic_partition)
            logger.debug(f"Resumed {self.topic_partition}")

    async def _handle(self, item: InboundMessage | EventEnvelope) -> None:
        result = await self._process_with_infrastructure_retry(item)
        if result is None:
            return
        self.processed += 1

        offset = item.offset
        if result.outcome is Outcome.RETRY_SCHEDULED:
            # Offset stays pending: the committed offset cannot pass it
            if result.envelope is not None:
                self._delay_queue.park(result.envelope)
            return

        self._tracker.complete(offset)
        await self._on_terminal(self.topic_partition)

    async def _process_with_infrastructure_retry(
        self, item: InboundMessage | EventEnvelope
    ) -> ProcessResult | None:
        attempt = 0
        while True:
            try:
                return await self._processor.process(item)
            except InfrastructureError as e:
                attempt += 1
                delay = self._infrastructure_backoff.delay_for_attempt(attempt)
                log = logger.error if isinstance(e, DeadLetterWriteError) else logger.warning
                log(
                    f"Infrastructure failure on {self.topic_partition} "
                    f"offset {item.offset} ({type(e).__name__}: {e}); "
                    f"pausing worker {delay:.2f}s"
                )
                await asyncio.sleep(delay)
                if self._stopping:
                    # Leave it uncommitted; it is redelivered after restart
                    return None
            except Exception as e:  # noqa: BLE001
                attempt += 1
                delay = self._infrastructure_backoff.delay_for_attempt(attempt)
                logger.error(
                    f"Unexpected {type(e).__name__} processing {self.topic_partition} "
                    f"offset {item.offset}: {e}; retrying in {delay:.2f}s",
                    exc_info=True,
                )
                await asyncio.sleep(delay)
                if self._stopping:
                    return None
