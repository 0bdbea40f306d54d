"""DeadLetterRecord — write-once artifact for events that exhausted their retries."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from ..envelope import EventEnvelope
from ..exceptions import ErrorKind
from ..ledger import AttemptOutcome


class DeadLetterRecord(BaseModel):
    """Original envelope plus its failure history in chronological order.

    Frozen: never mutated after creation.
    """

    model_config = ConfigDict(frozen=True)

    envelope: EventEnvelope
    attempts: tuple[AttemptOutcome, ...]
    reason: str
    error_kind: ErrorKind
    dead_lettered_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def event_id(self) -> str:
        return self.envelope.event_id

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    def to_json(self) -> bytes:
        """Encode as UTF-8 JSON; the envelope keeps its camelCase wire names."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes | str) -> DeadLetterRecord:
        return cls.model_validate_json(raw)
