"""IDeadLetterSink — port for durable dead-letter destinations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .record import DeadLetterRecord


@runtime_checkable
class IDeadLetterSink(Protocol):
    """
    Durable, at-least-once destination for dead-letter records.

    ``send`` must only return once the record is durably stored; any failure
    raises :class:`~order_notifications.exceptions.DeadLetterWriteError`.
    """

    async def send(self, record: DeadLetterRecord) -> None: ...

    async def close(self) -> None: ...

    async def health_check(self) -> bool: ...
