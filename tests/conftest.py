"""Shared fixtures: fake clock, message factory and an in-memory pipeline."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# Ensure the package is importable when running pytest from the repo root
# without an editable install.
_src = Path(__file__).resolve().parents[1] / "src"
if _src.is_dir() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from order_notifications.dead_letter.memory import InMemoryDeadLetterSink
from order_notifications.dedup.memory import InMemoryDedupStore
from order_notifications.dispatch.channel import TemplateRecipientResolver
from order_notifications.dispatch.delivery import NotificationChannel
from order_notifications.dispatch.dispatcher import ChannelDispatcher
from order_notifications.dispatch.memory.fake import InMemorySender
from order_notifications.envelope import InboundMessage
from order_notifications.ledger import InMemoryRetryLedger
from order_notifications.processor import EventProcessor
from order_notifications.retry import RetryPolicy

TOPIC = "order.created"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def order_payload(event_id: str = "e1", **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "eventId": event_id,
        "orderId": "o1",
        "userId": "u1",
        "total": 10.5,
        "currency": "USD",
        "createdAt": "2024-01-01T00:00:00Z",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def payload():
    """Factory for ``order.created`` payload dicts."""
    return order_payload


@pytest.fixture
def make_message():
    """Factory for InboundMessages; dict values are JSON-encoded."""

    def _make(
        value: dict[str, Any] | bytes | None = None,
        *,
        partition: int = 0,
        offset: int = 0,
        topic: str = TOPIC,
    ) -> InboundMessage:
        if value is None:
            value = order_payload()
        if isinstance(value, dict):
            value = json.dumps(value).encode("utf-8")
        return InboundMessage(
            topic=topic, partition=partition, offset=offset, value=value
        )

    return _make


@pytest.fixture
def sender() -> InMemorySender:
    return InMemorySender()


@pytest.fixture
def dispatcher(sender: InMemorySender) -> ChannelDispatcher:
    return ChannelDispatcher(
        sender,
        NotificationChannel.EMAIL,
        TemplateRecipientResolver("{user_id}@example.com"),
    )


@pytest.fixture
def dedup_store(clock: FakeClock) -> InMemoryDedupStore:
    return InMemoryDedupStore(clock=clock)


@pytest.fixture
def ledger() -> InMemoryRetryLedger:
    return InMemoryRetryLedger()


@pytest.fixture
def dead_letter_sink() -> InMemoryDeadLetterSink:
    return InMemoryDeadLetterSink()


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Deterministic policy: no jitter."""
    return RetryPolicy(max_retries=5, base_delay=1.0, max_delay=300.0, jitter=0.0)


@pytest.fixture
def processor(
    dispatcher: ChannelDispatcher,
    dedup_store: InMemoryDedupStore,
    ledger: InMemoryRetryLedger,
    dead_letter_sink: InMemoryDeadLetterSink,
    retry_policy: RetryPolicy,
    clock: FakeClock,
) -> EventProcessor:
    return EventProcessor(
        dispatcher,
        dedup_store,
        ledger,
        dead_letter_sink,
        retry_policy=retry_policy,
        dispatch_timeout=1.0,
        clock=clock,
    )
