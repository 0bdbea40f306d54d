"""DelayedRetryQueue — parks retryable envelopes until the ledger says they are due."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from ..envelope import EventEnvelope
    from ..ledger import IRetryLedger

logger = logging.getLogger(__name__)


class DelayedRetryQueue:
    """
    Holds envelopes whose last attempt returned RETRY_SCHEDULED.

    Eligibility comes from the retry ledger's ``next_eligible_at``; this queue
    only keeps the decoded envelopes so they can be handed back to their
    partition worker. Parked envelopes are never committed, so a restart
    redelivers them from the broker.
    """

    def __init__(self, ledger: IRetryLedger) -> None:
        self._ledger = ledger
        self._parked: dict[str, list[EventEnvelope]] = {}

    def park(self, envelope: EventEnvelope) -> None:
        # The same event may sit at several offsets (producer retries)
        self._parked.setdefault(envelope.event_id, []).append(envelope)

    def is_parked(self, event_id: str) -> bool:
        return event_id in self._parked

    async def pop_due(self, now: datetime) -> list[EventEnvelope]:
        """Remove and return the parked envelopes that are due, earliest first."""
        due: list[EventEnvelope] = []
        for event_id in await self._ledger.due_for_retry(now):
            envelopes = self._parked.pop(event_id, None)
            if not envelopes:
                # Scheduled by another replica sharing the ledger
                continue
            await self._ledger.mark_processing(event_id)
            due.extend(envelopes)
        if due:
            logger.debug(f"{len(due)} parked envelopes due for retry")
        return due

    def clear(self) -> list[EventEnvelope]:
        """Drop everything parked (on shutdown) and return it."""
        dropped = [e for envelopes in self._parked.values() for e in envelopes]
        self._parked.clear()
        return dropped

    def __len__(self) -> int:
        return sum(len(envelopes) for envelopes in self._parked.values())
