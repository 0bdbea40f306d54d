"""EventProcessor — validate, dedup, dispatch, then retry or dead-letter one message."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

from .dead_letter.record import DeadLetterRecord
from .envelope import EventEnvelope, InboundMessage
from .exceptions import (
    ChannelError,
    DeadLetterWriteError,
    DispatchTimeoutError,
    EnvelopeValidationError,
    ErrorKind,
)
from .ledger import AttemptOutcome, ProcessingStatus
from .logging_config import log_outcome
from .retry import RetryPolicy
from .serialization import EnvelopeDecoder

if TYPE_CHECKING:
    from collections.abc import Callable

    from .dead_letter.ports import IDeadLetterSink
    from .dedup.ports import IDedupStore
    from .dispatch.ports import INotificationDispatcher
    from .ledger import IRetryLedger, ProcessingRecord

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    DELIVERED = "delivered"
    DUPLICATE = "duplicate"
    RETRY_SCHEDULED = "retry_scheduled"
    DEAD_LETTERED = "dead_lettered"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        """Terminal outcomes allow the message's offset to be committed."""
        return self is not Outcome.RETRY_SCHEDULED


@dataclass(frozen=True)
class ProcessResult:
    outcome: Outcome
    event_id: str | None
    attempt_count: int = 0
    error_kind: ErrorKind | None = None
    error: str | None = None
    next_eligible_at: datetime | None = None
    envelope: EventEnvelope | None = None
    topic: str | None = None
    partition: int | None = None
    offset: int | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventProcessor:
    """Runs one message through the pipeline and returns its Outcome.

    Side effects for an attempt are ordered: the dispatcher call completes
    before the dedup store or ledger is touched, so a crash mid-dispatch can
    never mark the event as delivered.

    InfrastructureError from the dedup store or ledger propagates to the
    caller and consumes no attempt. DeadLetterWriteError propagates as well:
    the message must not be committed.
    """

    def __init__(
        self,
        dispatcher: INotificationDispatcher,
        dedup_store: IDedupStore,
        ledger: IRetryLedger,
        dead_letter_sink: IDeadLetterSink,
        *,
        retry_policy: RetryPolicy | None = None,
        dispatch_timeout: float = 10.0,
        decoder: EnvelopeDecoder | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._dedup = dedup_store
        self._ledger = ledger
        self._dead_letter_sink = dead_letter_sink
        self._retry_policy = retry_policy or RetryPolicy()
        self._dispatch_timeout = dispatch_timeout
        self._decoder = decoder or EnvelopeDecoder()
        self._clock = clock or _utcnow

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def process(self, message: InboundMessage | EventEnvelope) -> ProcessResult:
        """Process a raw message or an already-decoded envelope (retries)."""
        if isinstance(message, InboundMessage):
            try:
                envelope = self._decoder.decode(message)
            except EnvelopeValidationError as e:
                result = ProcessResult(
                    outcome=Outcome.REJECTED,
                    event_id=e.event_id,
                    error_kind=ErrorKind.VALIDATION,
                    error=e.reason,
                    topic=message.topic,
                    partition=message.partition,
                    offset=message.offset,
                )
                log_outcome(result)
                return result
        else:
            envelope = message

        result = await self._process_envelope(envelope)
        log_outcome(result)
        return result

    async def _process_envelope(self, envelope: EventEnvelope) -> ProcessResult:
        event_id = envelope.event_id

        if await self._dedup.has(event_id):
            record = await self._ledger.get(event_id)
            return self._result(
                Outcome.DUPLICATE, envelope, record.attempt_count if record else 0
            )

        record = await self._ledger.get(event_id)
        if record is not None:
            resumed = await self._resume_from_ledger(envelope, record)
            if resumed is not None:
                return resumed

        try:
            await self._dispatch(envelope)
        except ChannelError as e:
            return await self._handle_failure(envelope, e.kind, str(e))
        except Exception as e:  # noqa: BLE001
            # Unclassified channel failures are treated as transient
            logger.warning(
                f"Unclassified dispatch failure for {event_id}: {e}", exc_info=True
            )
            return await self._handle_failure(
                envelope, ErrorKind.TRANSIENT, f"{type(e).__name__}: {e}"
            )

        now = self._clock()
        await self._dedup.mark_processed(event_id, now)
        record = await self._ledger.record_attempt(event_id, AttemptOutcome.success(now))
        return self._result(Outcome.DELIVERED, envelope, record.attempt_count)

    async def _resume_from_ledger(
        self, envelope: EventEnvelope, record: ProcessingRecord
    ) -> ProcessResult | None:
        """Short-circuit redeliveries whose fate the ledger already knows."""
        if record.status is ProcessingStatus.SUCCEEDED:
            # Dedup entry lost (expired or store flushed) but the ledger remembers
            return self._result(Outcome.DUPLICATE, envelope, record.attempt_count)
        if record.status is ProcessingStatus.DEAD_LETTERED:
            last = record.attempts[-1] if record.attempts else None
            return self._result(
                Outcome.DEAD_LETTERED,
                envelope,
                record.attempt_count,
                error_kind=last.error_kind if last else None,
                error="already dead-lettered",
            )
        if record.status is ProcessingStatus.PENDING:
            # Owned by the delay queue until it is popped (PROCESSING), due or not;
            # the redelivered copy is parked next to it and released with it
            last = record.attempts[-1] if record.attempts else None
            return self._result(
                Outcome.RETRY_SCHEDULED,
                envelope,
                record.attempt_count,
                error_kind=last.error_kind if last else None,
                error=last.error if last else None,
                next_eligible_at=record.next_eligible_at,
            )
        last = record.attempts[-1] if record.attempts else None
        if last is not None and not last.succeeded:
            exhausted = not self._retry_policy.should_retry(record.attempt_count)
            if last.error_kind is ErrorKind.PERMANENT or exhausted:
                # A previous dead-letter write failed; finish it without resending
                return await self._dead_letter(
                    envelope, record, last.error_kind or ErrorKind.TRANSIENT, last.error or ""
                )
        return None

    async def _dispatch(self, envelope: EventEnvelope) -> None:
        try:
            await asyncio.wait_for(
                self._dispatcher.send(envelope), timeout=self._dispatch_timeout
            )
        except asyncio.TimeoutError as e:
            raise DispatchTimeoutError(
                "dispatcher", f"no response within {self._dispatch_timeout}s"
            ) from e

    async def _handle_failure(
        self, envelope: EventEnvelope, kind: ErrorKind, error: str
    ) -> ProcessResult:
        now = self._clock()
        record = await self._ledger.record_attempt(
            envelope.event_id, AttemptOutcome.failure(now, kind, error)
        )

        if kind is not ErrorKind.PERMANENT and self._retry_policy.should_retry(
            record.attempt_count
        ):
            delay = self._retry_policy.delay_for_attempt(record.attempt_count)
            next_eligible_at = now + timedelta(seconds=delay)
            await self._ledger.schedule_retry(envelope.event_id, next_eligible_at)
            return self._result(
                Outcome.RETRY_SCHEDULED,
                envelope,
                record.attempt_count,
                error_kind=kind,
                error=error,
                next_eligible_at=next_eligible_at,
            )

        return await self._dead_letter(envelope, record, kind, error)

    async def _dead_letter(
        self,
        envelope: EventEnvelope,
        record: ProcessingRecord,
        kind: ErrorKind,
        error: str,
    ) -> ProcessResult:
        now = self._clock()
        if kind is ErrorKind.PERMANENT:
            reason = f"permanent failure: {error}"
        else:
            reason = f"exhausted {record.attempt_count} attempts: {error}"
        dead_letter = DeadLetterRecord(
            envelope=envelope,
            attempts=tuple(record.attempts),
            reason=reason,
            error_kind=kind,
            dead_lettered_at=now,
        )
        try:
            await self._dead_letter_sink.send(dead_letter)
        except DeadLetterWriteError:
            logger.error(
                f"Dead-letter write failed for {envelope.event_id}; "
                "message left uncommitted",
                exc_info=True,
            )
            raise
        except Exception as e:
            logger.error(
                f"Dead-letter sink raised for {envelope.event_id}; "
                "message left uncommitted",
                exc_info=True,
            )
            raise DeadLetterWriteError(str(e), event_id=envelope.event_id) from e

        await self._ledger.mark_dead_lettered(envelope.event_id, now)
        return self._result(
            Outcome.DEAD_LETTERED,
            envelope,
            record.attempt_count,
            error_kind=kind,
            error=error,
        )

    @staticmethod
    def _result(
        outcome: Outcome,
        envelope: EventEnvelope,
        attempt_count: int,
        *,
        error_kind: ErrorKind | None = None,
        error: str | None = None,
        next_eligible_at: datetime | None = None,
    ) -> ProcessResult:
        return ProcessResult(
            outcome=outcome,
            event_id=envelope.event_id,
            attempt_count=attempt_count,
            error_kind=error_kind,
            error=error,
            next_eligible_at=next_eligible_at,
            envelope=envelope,
            topic=envelope.topic,
            partition=envelope.partition,
            offset=envelope.offset,
        )
