"""ChannelDispatcher — bridges order events to a single notification channel."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import ErrorKind, PermanentDispatchError, TransientDispatchError
from .content import order_created_notification
from .ports import INotificationDispatcher

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..envelope import EventEnvelope
    from .channel import RecipientResolver
    from .delivery import DeliveryRecord, NotificationChannel, RenderedNotification
    from .ports import INotificationSender

logger = logging.getLogger(__name__)


class ChannelDispatcher(INotificationDispatcher):
    """
    Resolves the recipient, builds the content and sends via one channel.

    Failed deliveries are raised as TransientDispatchError or
    PermanentDispatchError according to the sender's classification, so the
    event processor never needs to know which channel it talks to.
    """

    def __init__(
        self,
        sender: INotificationSender,
        channel: NotificationChannel,
        resolver: RecipientResolver,
        *,
        content_builder: Callable[[EventEnvelope], RenderedNotification] | None = None,
    ) -> None:
        self.sender = sender
        self.channel = channel
        self.resolver = resolver
        self.content_builder = content_builder or order_created_notification

    async def send(self, envelope: EventEnvelope) -> DeliveryRecord:
        recipient = await self.resolver.resolve(envelope)
        if not recipient:
            raise PermanentDispatchError(
                self.channel.value, f"no recipient for user {envelope.user_id}"
            )

        content = self.content_builder(envelope)
        # Only identifiers go into metadata, never the order payload
        metadata: dict[str, object] = {
            "event_id": envelope.event_id,
            "order_id": envelope.order_id,
        }
        record = await self.sender.send(
            recipient=recipient,
            content=content,
            channel=self.channel,
            metadata=metadata,
        )
        if record.ok:
            logger.debug(
                f"Sent {self.channel.value} notification for {envelope.event_id} "
                f"to {recipient}"
            )
            return record

        reason = record.error or "unknown error"
        if record.failure_kind is ErrorKind.PERMANENT:
            raise PermanentDispatchError(self.channel.value, reason)
        raise TransientDispatchError(self.channel.value, reason)
