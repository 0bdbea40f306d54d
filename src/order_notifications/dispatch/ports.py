"""Notification sender and dispatcher ports."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..envelope import EventEnvelope
    from .delivery import DeliveryRecord, NotificationChannel, RenderedNotification


@runtime_checkable
class INotificationSender(Protocol):
    """
    Channel-specific port for pushing content to one recipient.

    Adapters must explicitly declare: class SmtpEmailSender(INotificationSender):
    Senders never raise for provider failures; they return a failed
    DeliveryRecord classified as transient or permanent.
    """

    async def send(
        self,
        recipient: str,
        content: RenderedNotification,
        channel: NotificationChannel,
        metadata: dict[str, object] | None = None,
    ) -> DeliveryRecord:
        """Send notification and return delivery record."""
        ...


@runtime_checkable
class INotificationDispatcher(Protocol):
    """
    Channel-agnostic port used by the event processor.

    ``send`` returns the successful DeliveryRecord or raises
    TransientDispatchError / PermanentDispatchError.
    """

    async def send(self, envelope: EventEnvelope) -> DeliveryRecord: ...
