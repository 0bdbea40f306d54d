"""Module boundary tests: the pipeline stays independent of its adapters."""

from pytest_archon import archrule


def test_processor_independent_of_transports() -> None:
    """
    The event processor talks to ports only.
    It must not import Kafka, Redis or the HTTP layer.
    """
    (
        archrule("processor_is_transport_free")
        .match("order_notifications.processor")
        .should_not_import("aiokafka*")
        .should_not_import("redis*")
        .should_not_import("fastapi*")
        .should_not_import("order_notifications.kafka*")
        .should_not_import("order_notifications.api*")
        .check("order_notifications")
    )


def test_consumer_loop_independent_of_kafka() -> None:
    """
    The consumption loop drives an IMessageSource.
    The Kafka adapter plugs in from the outside (bootstrap).
    """
    (
        archrule("consumer_is_kafka_free")
        .match("order_notifications.consumer*")
        .should_not_import("aiokafka*")
        .should_not_import("order_notifications.kafka*")
        .should_not_import("order_notifications.bootstrap")
        .check("order_notifications")
    )


def test_ports_layering() -> None:
    """
    Ports (interfaces) should not depend on adapters (implementations).
    """
    (
        archrule("ports_layering")
        .match("order_notifications.*.ports")
        .should_not_import("order_notifications.kafka*")
        .should_not_import("order_notifications.dedup.redis_store")
        .should_not_import("order_notifications.dispatch.email*")
        .should_not_import("order_notifications.dispatch.push*")
        .should_not_import("order_notifications.dispatch.sms*")
        .check("order_notifications")
    )


def test_dispatch_independent_of_consumption() -> None:
    """Dispatch must not import the consumer, Kafka or the stores."""
    (
        archrule("dispatch_independence")
        .match("order_notifications.dispatch*")
        .should_not_import("order_notifications.consumer*")
        .should_not_import("order_notifications.kafka*")
        .should_not_import("order_notifications.dedup*")
        .should_not_import("order_notifications.ledger")
        .check("order_notifications")
    )
