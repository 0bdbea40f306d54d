"""KafkaDeadLetterSink — dead-letter records published to a Kafka topic."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from ..exceptions import DeadLetterWriteError

if TYPE_CHECKING:
    from ..dead_letter.record import DeadLetterRecord
    from .connection import KafkaConnectionManager

logger = logging.getLogger(__name__)


class KafkaDeadLetterSink:
    """Publishes each record with ``send_and_wait`` (acks=all).

    Records are keyed by order id so every dead letter of one order lands in
    the same partition.
    """

    def __init__(
        self,
        connection: KafkaConnectionManager,
        topic: str,
    ) -> None:
        self._connection = connection
        self._topic = topic
        self._producer: AIOKafkaProducer | None = None

    @property
    def topic(self) -> str:
        return self._topic

    async def _get_producer(self) -> AIOKafkaProducer:
        if self._producer is not None:
            return self._producer
        producer = AIOKafkaProducer(**self._connection.producer_config())
        try:
            await producer.start()
        except Exception:
            # Release the half-started client before the worker retries
            await producer.stop()
            raise
        self._producer = producer
        return producer

    async def send(self, record: DeadLetterRecord) -> None:
        try:
            producer = await self._get_producer()
            await producer.send_and_wait(
                self._topic,
                value=record.to_json(),
                key=record.envelope.order_id.encode("utf-8"),
                headers=[
                    ("event_id", record.event_id.encode("utf-8")),
                    ("error_kind", record.error_kind.value.encode("utf-8")),
                ],
            )
        except KafkaError as e:
            raise DeadLetterWriteError(str(e), event_id=record.event_id) from e
        logger.info(f"Dead-lettered {record.event_id} to {self._topic}")

    async def close(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None

    async def health_check(self) -> bool:
        return await self._connection.health_check()
