"""ConsumptionLoop — pulls batches, fans out to partition workers, commits offsets."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..exceptions import InfrastructureError, MessageSourceError
from ..retry import RetryPolicy
from .delay_queue import DelayedRetryQueue
from .lifecycle import Lifecycle, LoopState
from .offsets import PartitionOffsetTracker
from .worker import PartitionWorker

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..dedup.ports import IDedupStore
    from ..envelope import InboundMessage, TopicPartition
    from ..health.registry import HealthRegistry
    from ..ledger import IRetryLedger
    from ..processor import EventProcessor
    from .ports import IMessageSource

logger = logging.getLogger(__name__)

HEARTBEAT_NAME = "consumer"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsumptionLoop:
    """
    At-least-once consumer over a partitioned topic.

    One PartitionWorker per topic-partition processes records in log order.
    Retryable failures are parked in a DelayedRetryQueue so the partition keeps
    flowing; their offsets stay pending, so the committed offset of a
    partition never passes a record that has not reached a terminal outcome.
    A retried record may therefore be processed after later records of the
    same partition.

    Shutdown (:meth:`request_shutdown`): stop polling, let in-flight records
    finish within ``shutdown_grace`` seconds, cancel what is left, commit the
    final watermarks and stop the source.
    """

    def __init__(
        self,
        source: IMessageSource,
        processor: EventProcessor,
        ledger: IRetryLedger,
        *,
        dedup_store: IDedupStore | None = None,
        health: HealthRegistry | None = None,
        poll_timeout_ms: int = 1000,
        max_records: int = 500,
        max_queued_per_partition: int = 500,
        shutdown_grace: float = 15.0,
        commit_interval: float = 0.0,
        retry_poll_interval: float = 0.5,
        maintenance_interval: float = 60.0,
        infrastructure_backoff: RetryPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._processor = processor
        self._ledger = ledger
        self._dedup_store = dedup_store
        self._health = health
        self._poll_timeout_ms = poll_timeout_ms
        self._max_records = max_records
        self._max_queued = max_queued_per_partition
        self._shutdown_grace = shutdown_grace
        self._commit_interval = commit_interval
        self._retry_poll_interval = retry_poll_interval
        self._maintenance_interval = maintenance_interval
        self._infrastructure_backoff = infrastructure_backoff or RetryPolicy(
            max_retries=1_000_000, base_delay=0.5, max_delay=30.0
        )
        self._clock = clock or _utcnow

        self.lifecycle = Lifecycle()
        self.delay_queue = DelayedRetryQueue(ledger)
        self._workers: dict[TopicPartition, PartitionWorker] = {}
        self._trackers: dict[TopicPartition, PartitionOffsetTracker] = {}
        self._dirty: set[TopicPartition] = set()
        self._commit_lock = asyncio.Lock()
        self._stop_requested = asyncio.Event()
        self._background: list[asyncio.Task[None]] = []

    @property
    def state(self) -> LoopState:
        return self.lifecycle.state

    @property
    def workers(self) -> dict[TopicPartition, PartitionWorker]:
        return dict(self._workers)

    def tracker(self, tp: TopicPartition) -> PartitionOffsetTracker | None:
        return self._trackers.get(tp)

    # ── lifecycle ────────────────────────────────────────────────────

    async def run(self) -> None:
        """Consume until :meth:`request_shutdown` is called, then drain."""
        self.lifecycle.transition(LoopState.RUNNING)
        try:
            await self._source.start()
        except Exception:
            self.lifecycle.transition(LoopState.DRAINING)
            self.lifecycle.transition(LoopState.STOPPED)
            raise

        self._background = [
            asyncio.create_task(self._retry_scheduler(), name="retry-scheduler"),
            asyncio.create_task(self._maintenance(), name="store-maintenance"),
        ]
        if self._commit_interval > 0:
            self._background.append(
                asyncio.create_task(self._periodic_commit(), name="offset-committer")
            )

        try:
            await self._poll_until_stopped()
        finally:
            if self.state is LoopState.RUNNING:
                self.lifecycle.transition(LoopState.DRAINING)
            await self._drain()

    def request_shutdown(self) -> None:
        """Ask the loop to drain; safe to call more than once."""
        if self.state is LoopState.RUNNING:
            self.lifecycle.transition(LoopState.DRAINING)
        self._stop_requested.set()

    async def wait_stopped(self) -> None:
        await self.lifecycle.wait_for(LoopState.STOPPED)

    # ── polling ──────────────────────────────────────────────────────

    async def _poll_until_stopped(self) -> None:
        source_failures = 0
        while self.state is LoopState.RUNNING:
            batch = await self._poll_once()
            if batch is None:
                # Stop requested while waiting
                break
            if isinstance(batch, MessageSourceError):
                source_failures += 1
                delay = self._infrastructure_backoff.delay_for_attempt(source_failures)
                logger.warning(f"Polling failed ({batch}); retrying in {delay:.2f}s")
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
                continue
            source_failures = 0

            if self._health is not None:
                self._health.heartbeat(HEARTBEAT_NAME)
            for tp, messages in batch.items():
                worker = self._worker_for(tp)
                for message in messages:
                    worker.enqueue(message)

    async def _poll_once(
        self,
    ) -> dict[TopicPartition, list[InboundMessage]] | MessageSourceError | None:
        fetch = asyncio.ensure_future(
            self._source.getmany(
                timeout_ms=self._poll_timeout_ms, max_records=self._max_records
            )
        )
        stop = asyncio.ensure_future(self._stop_requested.wait())
        try:
            await asyncio.wait({fetch, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
        if not fetch.done():
            fetch.cancel()
            with contextlib.suppress(asyncio.CancelledError, MessageSourceError):
                await fetch
            return None
        try:
            return fetch.result()
        except MessageSourceError as e:
            return e

    def _worker_for(self, tp: TopicPartition) -> PartitionWorker:
        worker = self._workers.get(tp)
        if worker is None:
            tracker = self._trackers.setdefault(tp, PartitionOffsetTracker())
            worker = PartitionWorker(
                tp,
                self._processor,
                tracker,
                self.delay_queue,
                self._source,
                infrastructure_backoff=self._infrastructure_backoff,
                on_terminal=self._on_terminal,
                max_queued=self._max_queued,
            )
            worker.start()
            self._workers[tp] = worker
            logger.info(f"Started worker for {tp[0]}[{tp[1]}]")
        return worker

    # ── commits ──────────────────────────────────────────────────────

    async def _on_terminal(self, tp: TopicPartition) -> None:
        if self._commit_interval > 0:
            self._dirty.add(tp)
            return
        await self._commit([tp])

    async def _commit(self, partitions: list[TopicPartition]) -> None:
        async with self._commit_lock:
            offsets: dict[TopicPartition, int] = {}
            for tp in partitions:
                tracker = self._trackers.get(tp)
                offset = tracker.next_commit() if tracker is not None else None
                if offset is not None:
                    offsets[tp] = offset
            if not offsets:
                return
            try:
                await self._source.commit(offsets)
            except MessageSourceError as e:
                # Retried with the next terminal outcome or at drain
                logger.warning(f"Offset commit failed for {sorted(offsets)}: {e}")
                self._dirty.update(offsets)
                return
            for tp, offset in offsets.items():
                self._trackers[tp].mark_committed(offset)
            logger.debug(f"Committed {offsets}")

    async def _periodic_commit(self) -> None:
        while True:
            await asyncio.sleep(self._commit_interval)
            if self._dirty:
                dirty = list(self._dirty)
                self._dirty.clear()
                await self._commit(dirty)

    # ── background tasks ────────────────────────────────────────────

    async def _retry_scheduler(self) -> None:
        while True:
            await asyncio.sleep(self._retry_poll_interval)
            if self.state is not LoopState.RUNNING:
                continue
            try:
                due = await self.delay_queue.pop_due(self._clock())
            except InfrastructureError as e:
                logger.warning(f"Retry scheduler could not read the ledger: {e}")
                continue
            for envelope in due:
                worker = self._workers.get(envelope.topic_partition)
                if worker is None:
                    logger.warning(
                        f"No worker for {envelope.topic_partition}; "
                        f"{envelope.event_id} will be redelivered"
                    )
                    continue
                worker.enqueue(envelope)

    async def _maintenance(self) -> None:
        while True:
            await asyncio.sleep(self._maintenance_interval)
            now = self._clock()
            try:
                await self._ledger.purge(now)
                if self._dedup_store is not None:
                    await self._dedup_store.evict_expired(now)
            except InfrastructureError as e:
                logger.warning(f"Store maintenance failed: {e}")

    # ── drain ────────────────────────────────────────────────────────

    async def _drain(self) -> None:
        for task in self._background:
            task.cancel()
        for task in self._background:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._background = []

        workers = list(self._workers.values())
        for worker in workers:
            worker.stop_accepting()
        tasks = [w.task for w in workers if w.task is not None]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self._shutdown_grace)
            if pending:
                logger.warning(
                    f"Grace period of {self._shutdown_grace}s elapsed; "
                    f"cancelling {len(pending)} in-flight workers"
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        parked = self.delay_queue.clear()
        if parked:
            logger.info(f"{len(parked)} parked retries left for redelivery")

        await self._commit(list(self._trackers))
        try:
            await self._source.stop()
        finally:
            self.lifecycle.transition(LoopState.STOPPED)
