"""Consumption loop lifecycle: IDLE -> RUNNING -> DRAINING -> STOPPED."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..exceptions import InvalidStateTransitionError

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


_ALLOWED: dict[LoopState, frozenset[LoopState]] = {
    LoopState.IDLE: frozenset({LoopState.RUNNING, LoopState.STOPPED}),
    LoopState.RUNNING: frozenset({LoopState.DRAINING}),
    LoopState.DRAINING: frozenset({LoopState.STOPPED}),
    LoopState.STOPPED: frozenset(),
}


class Lifecycle:
    """Explicit, observable shutdown state machine."""

    def __init__(self) -> None:
        self._state = LoopState.IDLE
        self._events = {state: asyncio.Event() for state in LoopState}
        self._events[LoopState.IDLE].set()
        self.history: list[LoopState] = [LoopState.IDLE]

    @property
    def state(self) -> LoopState:
        return self._state

    def can_transition(self, to: LoopState) -> bool:
        return to in _ALLOWED[self._state]

    def transition(self, to: LoopState) -> None:
        if not self.can_transition(to):
            raise InvalidStateTransitionError(self._state.value, to.value)
        logger.info(f"Consumption loop {self._state.value} -> {to.value}")
        self._state = to
        self.history.append(to)
        self._events[to].set()

    async def wait_for(self, state: LoopState) -> None:
        """Block until *state* has been entered (returns at once if it was)."""
        await self._events[state].wait()
