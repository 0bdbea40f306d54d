"""Tests for service assembly and the process entry point."""

from __future__ import annotations

import asyncio
import os
from unittest.mock import patch

import pytest

from order_notifications.bootstrap import (
    build_connection,
    build_dead_letter_sink,
    build_dedup_store,
    build_sender,
    build_service,
)
from order_notifications.config import Settings
from order_notifications.consumer import InMemoryMessageSource, LoopState
from order_notifications.dead_letter import JsonlDeadLetterSink
from order_notifications.dedup import InMemoryDedupStore
from order_notifications.dispatch import ConsoleSender, InMemorySender, NotificationChannel
from order_notifications.kafka import KafkaDeadLetterSink
from order_notifications.main import main
from order_notifications.processor import Outcome

BASE_ENV = {
    "KAFKA_BROKERS": "localhost:9092",
    "KAFKA_CLIENT_ID": "order-notifications",
    "KAFKA_GROUP_ID": "order-notifications-group",
    "KAFKA_TOPIC_ORDER_CREATED": "order.created",
}


def _settings(**overrides: str) -> Settings:
    return Settings.from_env({**BASE_ENV, **overrides})


def test_connection_uses_profile_timeouts() -> None:
    connection = build_connection(_settings(APP_ENV="production"))

    assert connection.producer_config()["request_timeout_ms"] == 60_000
    assert connection.consumer_config("g")["session_timeout_ms"] == 60_000
    assert "session_timeout_ms" not in connection.producer_config()


@pytest.mark.parametrize(
    ("env", "sender_cls", "channel"),
    [
        ({}, "ConsoleSender", NotificationChannel.EMAIL),
        (
            {"NOTIFICATION_CHANNEL": "email", "SMTP_HOST": "smtp.test", "SMTP_FROM": "a@b.c"},
            "SmtpEmailSender",
            NotificationChannel.EMAIL,
        ),
        (
            {"NOTIFICATION_CHANNEL": "push", "PUSH_GATEWAY_URL": "https://push.test"},
            "PushGatewaySender",
            NotificationChannel.PUSH,
        ),
        (
            {
                "NOTIFICATION_CHANNEL": "sms",
                "TWILIO_ACCOUNT_SID": "AC1",
                "TWILIO_AUTH_TOKEN": "tok",
                "TWILIO_FROM_NUMBER": "+15550000000",
            },
            "TwilioSmsSender",
            NotificationChannel.SMS,
        ),
    ],
)
def test_build_sender(env, sender_cls, channel) -> None:
    sender, built_channel = build_sender(_settings(**env))

    assert type(sender).__name__ == sender_cls
    assert built_channel is channel


def test_console_is_the_default_sender() -> None:
    sender, _ = build_sender(_settings())
    assert isinstance(sender, ConsoleSender)


def test_dedup_store_selection() -> None:
    closeables: list = []
    assert isinstance(build_dedup_store(_settings(), closeables), InMemoryDedupStore)
    assert closeables == []

    store = build_dedup_store(_settings(REDIS_URL="redis://localhost:6379/0"), closeables)

    assert type(store).__name__ == "RedisDedupStore"
    assert len(closeables) == 1


def test_dead_letter_sink_selection(tmp_path) -> None:
    settings = _settings()
    connection = build_connection(settings)

    topic_sink = build_dead_letter_sink(settings, connection)
    file_sink = build_dead_letter_sink(
        _settings(DEAD_LETTER_SINK="file", DEAD_LETTER_PATH=str(tmp_path / "dl.jsonl")),
        connection,
    )

    assert isinstance(topic_sink, KafkaDeadLetterSink)
    assert topic_sink.topic == "order.created.dlq"
    assert isinstance(file_sink, JsonlDeadLetterSink)


def test_build_service_registers_readiness_checks(tmp_path) -> None:
    settings = _settings(DEAD_LETTER_SINK="file", DEAD_LETTER_PATH=str(tmp_path / "dl.jsonl"))

    service = build_service(settings, source=InMemoryMessageSource(), sender=InMemorySender())

    assert set(service.health.names) == {
        "kafka",
        "consumer_state",
        "dedup_store",
        "retry_ledger",
        "dead_letter_sink",
    }
    assert service.loop.state is LoopState.IDLE
    assert service.app.state.health_registry is service.health


@pytest.mark.asyncio
async def test_assembled_service_processes_events(tmp_path) -> None:
    settings = _settings(DEAD_LETTER_SINK="file", DEAD_LETTER_PATH=str(tmp_path / "dl.jsonl"))
    source = InMemoryMessageSource()
    sender = InMemorySender()
    service = build_service(settings, source=source, sender=sender)
    source.append(
        "order.created",
        0,
        {
            "eventId": "e1",
            "orderId": "o1",
            "userId": "u1",
            "total": 10.5,
            "currency": "USD",
            "createdAt": "2024-01-01T00:00:00Z",
        },
    )

    task = asyncio.create_task(service.loop.run())
    for _ in range(300):
        if source.committed.get(("order.created", 0)) == 1:
            break
        await asyncio.sleep(0.01)
    ready, components = await service.health.is_ready()
    service.loop.request_shutdown()
    await asyncio.wait_for(task, timeout=5)
    await service.close()

    assert ready, components
    sender.assert_sent("u1", NotificationChannel.EMAIL)
    result = await service.processor.process(source.log(("order.created", 0))[0])
    assert result.outcome is Outcome.DUPLICATE


@pytest.mark.asyncio
async def test_injected_sender_is_addressed_on_the_given_channel(tmp_path) -> None:
    settings = _settings(DEAD_LETTER_SINK="file", DEAD_LETTER_PATH=str(tmp_path / "dl.jsonl"))
    source = InMemoryMessageSource()
    sender = InMemorySender()
    service = build_service(
        settings, source=source, sender=sender, channel=NotificationChannel.PUSH
    )
    source.append(
        "order.created",
        0,
        {
            "eventId": "e1",
            "orderId": "o1",
            "userId": "u1",
            "total": 10.5,
            "currency": "USD",
            "createdAt": "2024-01-01T00:00:00Z",
        },
    )

    result = await service.processor.process(source.log(("order.created", 0))[0])
    await service.close()

    assert result.outcome is Outcome.DELIVERED
    sender.assert_sent("u1", NotificationChannel.PUSH)


def test_main_reports_configuration_errors(caplog) -> None:
    with patch.dict(os.environ, clear=True), patch(
        "order_notifications.config.load_dotenv"
    ), patch("order_notifications.main.configure_logging"):
        assert main() == 1

    assert "KAFKA_BROKERS" in caplog.text
