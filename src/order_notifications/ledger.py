"""Retry ledger — per-event attempt counts, history and next-eligible-retry time."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ErrorKind

logger = logging.getLogger(__name__)


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    DEAD_LETTERED = "dead_lettered"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.SUCCEEDED, ProcessingStatus.DEAD_LETTERED)


class AttemptOutcome(BaseModel):
    """Immutable result of one dispatch attempt.

    ``attempt`` is assigned by the ledger when the outcome is recorded.
    """

    model_config = ConfigDict(frozen=True)

    at: datetime
    succeeded: bool
    attempt: int = 0
    error_kind: ErrorKind | None = None
    error: str | None = None

    @classmethod
    def success(cls, at: datetime) -> AttemptOutcome:
        return cls(at=at, succeeded=True)

    @classmethod
    def failure(cls, at: datetime, kind: ErrorKind, error: str) -> AttemptOutcome:
        return cls(at=at, succeeded=False, error_kind=kind, error=error)


class ProcessingRecord(BaseModel):
    """Mutable per-event processing state, owned by the ledger."""

    event_id: str
    attempt_count: int = Field(default=0, ge=0)
    status: ProcessingStatus = ProcessingStatus.PROCESSING
    last_attempt_at: datetime | None = None
    next_eligible_at: datetime | None = None
    completed_at: datetime | None = None
    attempts: list[AttemptOutcome] = Field(default_factory=list)


@runtime_checkable
class IRetryLedger(Protocol):
    """Port for the retry ledger.

    Implementations must serialize updates to the same ``event_id``; updates to
    distinct ids need no coordination.
    """

    async def get(self, event_id: str) -> ProcessingRecord | None: ...

    async def record_attempt(
        self, event_id: str, outcome: AttemptOutcome
    ) -> ProcessingRecord: ...

    async def schedule_retry(
        self, event_id: str, next_eligible_at: datetime
    ) -> ProcessingRecord: ...

    async def mark_processing(self, event_id: str) -> ProcessingRecord: ...

    async def mark_dead_lettered(
        self, event_id: str, at: datetime
    ) -> ProcessingRecord: ...

    async def due_for_retry(self, now: datetime) -> list[str]: ...

    async def purge(self, now: datetime) -> int: ...

    async def health_check(self) -> bool: ...


class InMemoryRetryLedger(IRetryLedger):
    """Process-local ledger shared by all partition workers.

    Returned records are copies; mutate state only through the ledger.
    """

    def __init__(self, *, retention: timedelta = timedelta(days=1)) -> None:
        self._records: dict[str, ProcessingRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._retention = retention

    def _lock_for(self, event_id: str) -> asyncio.Lock:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = self._locks[event_id] = asyncio.Lock()
        return lock

    def _require(self, event_id: str) -> ProcessingRecord:
        record = self._records.get(event_id)
        if record is None:
            raise KeyError(f"No processing record for event {event_id!r}")
        return record

    async def get(self, event_id: str) -> ProcessingRecord | None:
        record = self._records.get(event_id)
        return record.model_copy(deep=True) if record is not None else None

    async def record_attempt(
        self, event_id: str, outcome: AttemptOutcome
    ) -> ProcessingRecord:
        async with self._lock_for(event_id):
            record = self._records.get(event_id)
            if record is None:
                record = self._records[event_id] = ProcessingRecord(event_id=event_id)
            record.attempt_count += 1
            record.attempts.append(
                outcome.model_copy(update={"attempt": record.attempt_count})
            )
            record.last_attempt_at = outcome.at
            record.next_eligible_at = None
            if outcome.succeeded:
                record.status = ProcessingStatus.SUCCEEDED
                record.completed_at = outcome.at
            else:
                record.status = ProcessingStatus.PROCESSING
            return record.model_copy(deep=True)

    async def schedule_retry(
        self, event_id: str, next_eligible_at: datetime
    ) -> ProcessingRecord:
        async with self._lock_for(event_id):
            record = self._require(event_id)
            record.status = ProcessingStatus.PENDING
            record.next_eligible_at = next_eligible_at
            return record.model_copy(deep=True)

    async def mark_processing(self, event_id: str) -> ProcessingRecord:
        async with self._lock_for(event_id):
            record = self._require(event_id)
            record.status = ProcessingStatus.PROCESSING
            return record.model_copy(deep=True)

    async def mark_dead_lettered(self, event_id: str, at: datetime) -> ProcessingRecord:
        async with self._lock_for(event_id):
            record = self._require(event_id)
            record.status = ProcessingStatus.DEAD_LETTERED
            record.next_eligible_at = None
            record.completed_at = at
            return record.model_copy(deep=True)

    async def due_for_retry(self, now: datetime) -> list[str]:
        due = [
            r
            for r in self._records.values()
            if r.status is ProcessingStatus.PENDING
            and r.next_eligible_at is not None
            and r.next_eligible_at <= now
        ]
        due.sort(key=lambda r: r.next_eligible_at)  # type: ignore[arg-type,return-value]
        return [r.event_id for r in due]

    async def purge(self, now: datetime) -> int:
        """Drop terminal records whose retention window has elapsed."""
        cutoff = now - self._retention
        expired = [
            event_id
            for event_id, r in self._records.items()
            if r.status.is_terminal
            and r.completed_at is not None
            and r.completed_at <= cutoff
        ]
        for event_id in expired:
            del self._records[event_id]
            self._locks.pop(event_id, None)
        if expired:
            logger.debug(f"Purged {len(expired)} terminal processing records")
        return len(expired)

    async def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._records)
