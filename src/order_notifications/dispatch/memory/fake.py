"""In-memory sender for test assertions."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass

from ..delivery import DeliveryRecord, NotificationChannel, RenderedNotification
from ..ports import INotificationSender

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    """Record of a sent message for test assertions."""

    recipient: str
    content: RenderedNotification
    channel: NotificationChannel
    metadata: dict[str, object] | None


class InMemorySender(INotificationSender):
    """
    Test double (Fake) that stores messages in a list for assertions.

    Failures can be scripted with :meth:`fail_next`; ``delay`` makes every
    send take that many seconds (to exercise timeouts and shutdown).
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.sent_messages: list[SentMessage] = []
        self.calls = 0
        self.delay = delay
        self._failures: deque[tuple[str, bool]] = deque()

    def fail_next(
        self, count: int = 1, *, error: str = "provider unavailable", permanent: bool = False
    ) -> None:
        """Make the next *count* sends fail with the given classification."""
        for _ in range(count):
            self._failures.append((error, permanent))

    async def send(
        self,
        recipient: str,
        content: RenderedNotification,
        channel: NotificationChannel,
        metadata: dict[str, object] | None = None,
    ) -> DeliveryRecord:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._failures:
            error, permanent = self._failures.popleft()
            return DeliveryRecord.failed(recipient, channel, error=error, permanent=permanent)
        self.sent_messages.append(SentMessage(recipient, content, channel, metadata))
        return DeliveryRecord.sent(recipient, channel, provider_id="test-id")

    def sent_for_event(self, event_id: str) -> list[SentMessage]:
        return [
            m for m in self.sent_messages if (m.metadata or {}).get("event_id") == event_id
        ]

    def assert_sent(
        self,
        recipient: str,
        channel: NotificationChannel,
        count: int = 1,
    ) -> None:
        """Helper for test assertions."""
        matches = [
            m for m in self.sent_messages if m.recipient == recipient and m.channel == channel
        ]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {recipient} via {channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        """Clear all sent messages and scripted failures."""
        self.sent_messages.clear()
        self._failures.clear()
        self.calls = 0
