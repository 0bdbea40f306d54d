"""Component assembly — turns Settings into a runnable service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .api.server import create_app
from .consumer.loop import ConsumptionLoop
from .dead_letter.file import JsonlDeadLetterSink
from .dedup.memory import InMemoryDedupStore
from .dispatch.channel import TemplateRecipientResolver
from .dispatch.delivery import NotificationChannel
from .dispatch.dispatcher import ChannelDispatcher
from .dispatch.memory.console import ConsoleSender
from .health.checks import (
    ConsumerStateHealthCheck,
    MessageBrokerHealthCheck,
    StoreHealthCheck,
)
from .health.registry import HealthRegistry
from .kafka.connection import KafkaConnectionManager
from .kafka.dead_letter import KafkaDeadLetterSink
from .kafka.source import KafkaMessageSource
from .ledger import InMemoryRetryLedger
from .processor import EventProcessor
from .retry import RetryPolicy

if TYPE_CHECKING:
    from fastapi import FastAPI

    from .config import Settings
    from .consumer.ports import IMessageSource
    from .dead_letter.ports import IDeadLetterSink
    from .dedup.ports import IDedupStore
    from .dispatch.ports import INotificationSender
    from .ledger import IRetryLedger

logger = logging.getLogger(__name__)


@dataclass
class Service:
    """Everything ``main`` needs to run and later close."""

    settings: Settings
    source: IMessageSource
    processor: EventProcessor
    loop: ConsumptionLoop
    health: HealthRegistry
    app: FastAPI
    dedup_store: IDedupStore
    ledger: IRetryLedger
    dead_letter_sink: IDeadLetterSink
    closeables: list[Any] = field(default_factory=list)

    async def close(self) -> None:
        """Release clients opened by the bootstrap (sinks, Redis)."""
        await self.dead_letter_sink.close()
        for resource in self.closeables:
            close = getattr(resource, "aclose", None) or getattr(resource, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Error while closing {type(resource).__name__}: {e}")


def build_connection(settings: Settings) -> KafkaConnectionManager:
    profile = settings.profile
    return KafkaConnectionManager(
        list(settings.kafka_brokers),
        client_id=settings.kafka_client_id,
        consumer_options={"session_timeout_ms": profile.kafka_session_timeout_ms},
        request_timeout_ms=profile.kafka_request_timeout_ms,
        retry_backoff_ms=profile.kafka_retry_backoff_ms,
    )


def build_sender(settings: Settings) -> tuple[INotificationSender, NotificationChannel]:
    """Pick the sender for ``NOTIFICATION_CHANNEL``; console prints as e-mail."""
    channel = settings.notification_channel
    if channel == "email":
        from .dispatch.email.smtp import SmtpEmailSender

        return (
            SmtpEmailSender(
                host=settings.smtp_host or "",
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
                timeout=settings.dispatch_timeout_seconds,
                from_email=settings.smtp_from,
            ),
            NotificationChannel.EMAIL,
        )
    if channel == "push":
        from .dispatch.push.gateway import PushGatewaySender

        return (
            PushGatewaySender(
                settings.push_gateway_url or "",
                timeout=settings.dispatch_timeout_seconds,
                secret=settings.push_signing_secret,
                api_token=settings.push_api_token,
            ),
            NotificationChannel.PUSH,
        )
    if channel == "sms":
        from .dispatch.sms.twilio import TwilioSmsSender

        return (
            TwilioSmsSender(
                account_sid=settings.twilio_account_sid or "",
                auth_token=settings.twilio_auth_token or "",
                from_number=settings.twilio_from_number or "",
            ),
            NotificationChannel.SMS,
        )
    return ConsoleSender(), NotificationChannel.EMAIL


def build_dedup_store(settings: Settings, closeables: list[Any]) -> IDedupStore:
    if not settings.redis_url:
        return InMemoryDedupStore(ttl=settings.dedup_ttl)

    from redis.asyncio import Redis

    from .dedup.redis_store import RedisDedupStore

    client = Redis.from_url(settings.redis_url)
    closeables.append(client)
    return RedisDedupStore(client, ttl=settings.dedup_ttl)


def build_dead_letter_sink(
    settings: Settings, connection: KafkaConnectionManager
) -> IDeadLetterSink:
    if settings.dead_letter_sink == "file":
        return JsonlDeadLetterSink(settings.dead_letter_path)
    return KafkaDeadLetterSink(connection, settings.dead_letter_topic_name)


def build_service(
    settings: Settings,
    *,
    source: IMessageSource | None = None,
    sender: INotificationSender | None = None,
    dead_letter_sink: IDeadLetterSink | None = None,
    channel: NotificationChannel | None = None,
) -> Service:
    """Assemble the service; ``source``, ``sender`` and the sink may be injected.

    An injected ``sender`` is addressed on ``channel`` (email when omitted).
    """
    connection = build_connection(settings)
    closeables: list[Any] = []

    if source is None:
        source = KafkaMessageSource(
            connection,
            [settings.kafka_topic_order_created],
            group_id=settings.kafka_group_id,
        )
    if sender is None:
        sender, channel = build_sender(settings)
    elif channel is None:
        channel = NotificationChannel.EMAIL
    if dead_letter_sink is None:
        dead_letter_sink = build_dead_letter_sink(settings, connection)

    dedup_store = build_dedup_store(settings, closeables)
    ledger = InMemoryRetryLedger(retention=settings.ledger_retention)
    dispatcher = ChannelDispatcher(
        sender, channel, TemplateRecipientResolver(settings.recipient_template)
    )
    retry_policy = RetryPolicy(
        max_retries=settings.max_retries,
        base_delay=settings.backoff_base_seconds,
        max_delay=settings.backoff_max_seconds,
        jitter=settings.backoff_jitter,
    )
    processor = EventProcessor(
        dispatcher,
        dedup_store,
        ledger,
        dead_letter_sink,
        retry_policy=retry_policy,
        dispatch_timeout=settings.dispatch_timeout_seconds,
    )

    health = HealthRegistry()
    loop = ConsumptionLoop(
        source,
        processor,
        ledger,
        dedup_store=dedup_store,
        health=health,
        max_queued_per_partition=settings.max_queued_per_partition,
        shutdown_grace=settings.shutdown_grace_seconds,
    )
    health.register("kafka", MessageBrokerHealthCheck(source))
    health.register("consumer_state", ConsumerStateHealthCheck(loop))
    health.register("dedup_store", StoreHealthCheck(dedup_store))
    health.register("retry_ledger", StoreHealthCheck(ledger))
    health.register("dead_letter_sink", StoreHealthCheck(dead_letter_sink))

    logger.info(
        f"Assembled service: topic={settings.kafka_topic_order_created} "
        f"group={settings.kafka_group_id} channel={settings.notification_channel} "
        f"dead_letter={settings.dead_letter_sink}"
    )
    return Service(
        settings=settings,
        source=source,
        processor=processor,
        loop=loop,
        health=health,
        app=create_app(health),
        dedup_store=dedup_store,
        ledger=ledger,
        dead_letter_sink=dead_letter_sink,
        closeables=closeables,
    )
