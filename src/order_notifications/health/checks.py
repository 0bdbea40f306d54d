"""Health check implementations."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from ..consumer.lifecycle import LoopState

if TYPE_CHECKING:
    from ..consumer.loop import ConsumptionLoop


async def _call_health_check(component: Any) -> bool:
    health_check = getattr(component, "health_check", None)
    if not callable(health_check):
        return False
    result = health_check()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


class MessageBrokerHealthCheck:
    """Health check for the message source (or any broker client)."""

    def __init__(self, broker_client: Any) -> None:
        self._broker = broker_client

    async def __call__(self) -> bool:
        try:
            if await _call_health_check(self._broker):
                return True
            is_connected = getattr(self._broker, "is_connected", None)
            if callable(is_connected):
                result = is_connected()
                if inspect.isawaitable(result):
                    result = await result
                return bool(result)
            return False
        except Exception:  # noqa: BLE001
            return False


class StoreHealthCheck:
    """Health check for a dedup store, retry ledger or dead-letter sink."""

    def __init__(self, store: Any) -> None:
        self._store = store

    async def __call__(self) -> bool:
        try:
            return await _call_health_check(self._store)
        except Exception:  # noqa: BLE001
            return False


class ConsumerStateHealthCheck:
    """Up while the consumption loop is RUNNING; down while draining or stopped."""

    def __init__(self, loop: ConsumptionLoop) -> None:
        self._loop = loop

    def __call__(self) -> bool:
        return self._loop.state is LoopState.RUNNING
