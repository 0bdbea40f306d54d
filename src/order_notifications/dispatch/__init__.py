"""Notification dispatch — channel-agnostic dispatcher over Email, Push and SMS senders."""

from __future__ import annotations

from .channel import MappingRecipientResolver, RecipientResolver, TemplateRecipientResolver
from .delivery import DeliveryRecord, DeliveryStatus, NotificationChannel, RenderedNotification
from .dispatcher import ChannelDispatcher
from .memory import ConsoleSender, InMemorySender
from .ports import INotificationDispatcher, INotificationSender

__all__ = [
    "ChannelDispatcher",
    "ConsoleSender",
    "DeliveryRecord",
    "DeliveryStatus",
    "INotificationDispatcher",
    "INotificationSender",
    "InMemorySender",
    "MappingRecipientResolver",
    "NotificationChannel",
    "RecipientResolver",
    "RenderedNotification",
    "TemplateRecipientResolver",
]
