"""In-memory dead-letter sink for tests and local development."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import DeadLetterWriteError
from .ports import IDeadLetterSink

if TYPE_CHECKING:
    from .record import DeadLetterRecord


class InMemoryDeadLetterSink(IDeadLetterSink):
    """
    Test double (Fake) that stores records in a list for assertions.

    Set ``fail_next`` to make the following ``send`` calls raise.
    """

    def __init__(self) -> None:
        self.records: list[DeadLetterRecord] = []
        self.fail_next = 0

    async def send(self, record: DeadLetterRecord) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise DeadLetterWriteError(
                "simulated dead-letter write failure", event_id=record.event_id
            )
        self.records.append(record)

    def for_event(self, event_id: str) -> list[DeadLetterRecord]:
        return [r for r in self.records if r.event_id == event_id]

    async def close(self) -> None:
        return None

    async def health_check(self) -> bool:
        return True
