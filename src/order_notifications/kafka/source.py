"""KafkaMessageSource — IMessageSource over an aiokafka consumer group."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError
from aiokafka.structs import OffsetAndMetadata
from aiokafka.structs import TopicPartition as KafkaTopicPartition

from ..envelope import InboundMessage
from ..exceptions import MessageSourceError

if TYPE_CHECKING:
    from ..envelope import TopicPartition
    from .connection import KafkaConnectionManager

logger = logging.getLogger(__name__)


def _to_inbound(record: Any) -> InboundMessage:
    return InboundMessage(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        value=record.value,
        key=record.key,
        timestamp_ms=record.timestamp,
    )


class KafkaMessageSource:
    """Subscribes one consumer group to the configured topics.

    Auto-commit is disabled; the consumption loop commits explicit offsets.
    Reconnects and rebalances are handled by aiokafka. Uncommitted records of
    a revoked partition are redelivered to its new owner.
    """

    def __init__(
        self,
        connection: KafkaConnectionManager,
        topics: list[str] | tuple[str, ...],
        *,
        group_id: str,
    ) -> None:
        self._connection = connection
        self._topics = tuple(topics)
        self._group_id = group_id
        self._consumer: AIOKafkaConsumer | None = None

    @property
    def topics(self) -> tuple[str, ...]:
        return self._topics

    def _require_consumer(self) -> AIOKafkaConsumer:
        if self._consumer is None:
            raise MessageSourceError("Kafka consumer is not started")
        return self._consumer

    async def start(self) -> None:
        if self._consumer is not None:
            return
        consumer = AIOKafkaConsumer(
            *self._topics, **self._connection.consumer_config(self._group_id)
        )
        try:
            await consumer.start()
        except KafkaError as e:
            raise MessageSourceError(f"Could not start Kafka consumer: {e}") from e
        self._consumer = consumer
        logger.info(
            f"Kafka consumer started (group={self._group_id}, topics={list(self._topics)})"
        )

    async def stop(self) -> None:
        if self._consumer is None:
            return
        consumer, self._consumer = self._consumer, None
        await consumer.stop()
        logger.info("Kafka consumer stopped")

    async def getmany(
        self, timeout_ms: int = 1000, max_records: int | None = None
    ) -> dict[TopicPartition, list[InboundMessage]]:
        consumer = self._require_consumer()
        try:
            records = await consumer.getmany(
                timeout_ms=timeout_ms, max_records=max_records
            )
        except KafkaError as e:
            raise MessageSourceError(f"Kafka fetch failed: {e}") from e
        return {
            (tp.topic, tp.partition): [_to_inbound(r) for r in batch]
            for tp, batch in records.items()
            if batch
        }

    async def commit(self, offsets: dict[TopicPartition, int]) -> None:
        consumer = self._require_consumer()
        kafka_offsets = {
            KafkaTopicPartition(topic, partition): OffsetAndMetadata(offset, "")
            for (topic, partition), offset in offsets.items()
        }
        try:
            await consumer.commit(kafka_offsets)
        except KafkaError as e:
            raise MessageSourceError(f"Kafka commit failed: {e}") from e

    def pause(self, *partitions: TopicPartition) -> None:
        if self._consumer is not None and partitions:
            self._consumer.pause(*(KafkaTopicPartition(t, p) for t, p in partitions))

    def resume(self, *partitions: TopicPartition) -> None:
        if self._consumer is not None and partitions:
            self._consumer.resume(*(KafkaTopicPartition(t, p) for t, p in partitions))

    async def health_check(self) -> bool:
        if self._consumer is None:
            return False
        return await self._connection.health_check()
