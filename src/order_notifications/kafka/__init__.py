"""Kafka adapters: consumer-group message source and dead-letter producer."""

from .connection import KafkaConnectionManager
from .dead_letter import KafkaDeadLetterSink
from .source import KafkaMessageSource

__all__ = ["KafkaConnectionManager", "KafkaDeadLetterSink", "KafkaMessageSource"]
