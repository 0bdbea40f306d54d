"""Kafka bootstrap settings and cluster health check."""

from __future__ import annotations

import logging
from typing import Any

from aiokafka.admin import AIOKafkaAdminClient

logger = logging.getLogger(__name__)


class KafkaConnectionManager:
    """Holds the broker list and client id shared by the consumer and producer.

    Does not hold a long-lived client; the message source and the dead-letter
    producer each build their own from :meth:`consumer_config` and
    :meth:`producer_config`.
    """

    def __init__(
        self,
        bootstrap_servers: str | list[str] = "localhost:9092",
        *,
        client_id: str = "order-notifications",
        consumer_options: dict[str, Any] | None = None,
        **config: Any,
    ) -> None:
        """Store bootstrap servers; ``config`` goes to every client,
        ``consumer_options`` (e.g. ``session_timeout_ms``) only to the consumer."""
        self._bootstrap_servers = bootstrap_servers
        self._client_id = client_id
        self._consumer_options = dict(consumer_options or {})
        self._config = config

    @property
    def bootstrap_servers(self) -> str | list[str]:
        return self._bootstrap_servers

    @property
    def client_id(self) -> str:
        return self._client_id

    def _base_config(self) -> dict[str, Any]:
        return {
            "bootstrap_servers": self._bootstrap_servers,
            "client_id": self._client_id,
            **self._config,
        }

    def producer_config(self) -> dict[str, Any]:
        """Config dict for AIOKafkaProducer (acks from every in-sync replica)."""
        return {"acks": "all", **self._base_config()}

    def consumer_config(self, group_id: str) -> dict[str, Any]:
        """Config dict for AIOKafkaConsumer; offsets are committed manually."""
        return {
            "group_id": group_id,
            "auto_offset_reset": "earliest",
            **self._base_config(),
            **self._consumer_options,
            "enable_auto_commit": False,
        }

    async def health_check(self) -> bool:
        """Return True if the cluster is reachable."""
        try:
            admin = AIOKafkaAdminClient(**self._base_config())
            await admin.start()
            try:
                await admin.list_topics()
                return True
            finally:
                await admin.close()
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Kafka health check failed: {e}")
            return False
