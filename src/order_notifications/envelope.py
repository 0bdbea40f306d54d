"""EventEnvelope and InboundMessage — the records flowing through the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

#: Payload keys as they appear on the wire (camelCase, as produced upstream).
WIRE_FIELDS: tuple[str, ...] = (
    "eventId",
    "orderId",
    "userId",
    "total",
    "currency",
    "createdAt",
)

TopicPartition = tuple[str, int]


@dataclass(frozen=True)
class InboundMessage:
    """Raw record handed over by a message source, before any decoding."""

    topic: str
    partition: int
    offset: int
    value: bytes | None
    key: bytes | None = None
    timestamp_ms: int | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def topic_partition(self) -> TopicPartition:
        return (self.topic, self.partition)


class EventEnvelope(BaseModel):
    """Immutable, fully-typed ``order.created`` event plus its transport metadata.

    ``event_id`` is the dedup key. Unknown payload fields are ignored.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    event_id: str = Field(..., alias="eventId", min_length=1)
    order_id: str = Field(..., alias="orderId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    total: Decimal = Field(..., ge=0)
    currency: str = Field(..., pattern=r"^[A-Za-z]{3}$")
    created_at: datetime = Field(..., alias="createdAt")

    topic: str = ""
    partition: int = -1
    offset: int = -1
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("total", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("total must be a number")
        if isinstance(value, float):
            # Avoid binary float artifacts in the decimal amount
            return Decimal(str(value))
        return value

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("created_at", "received_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def topic_partition(self) -> TopicPartition:
        return (self.topic, self.partition)

    def wire_payload(self) -> dict[str, Any]:
        """Return the payload in its camelCase wire shape (JSON-safe)."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            include={
                "event_id",
                "order_id",
                "user_id",
                "total",
                "currency",
                "created_at",
            },
        )
