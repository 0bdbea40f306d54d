"""Health check registry — aggregates component health and worker heartbeats."""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

UP = "up"
DOWN = "down"


class HealthRegistry:
    """Named health checks plus heartbeats from long-running workers.

    One instance per service, built by the bootstrap and handed to the
    consumption loop and the HTTP app.
    """

    def __init__(
        self,
        heartbeat_timeout_seconds: float = 60,
        check_timeout_seconds: float = 5,
    ) -> None:
        self._checks: dict[str, Callable[[], Any]] = {}
        self._heartbeats: dict[str, datetime.datetime] = {}
        self._heartbeat_timeout = heartbeat_timeout_seconds
        self._check_timeout = check_timeout_seconds

    def register(self, name: str, check: Callable[[], Any]) -> None:
        """Register a health check (sync or async callable returning a bool)."""
        self._checks[name] = check

    def unregister(self, name: str) -> None:
        self._checks.pop(name, None)

    @property
    def names(self) -> list[str]:
        return [*self._checks, *self._heartbeats]

    def heartbeat(self, worker_name: str) -> None:
        """Record worker heartbeat time."""
        self._heartbeats[worker_name] = datetime.datetime.now(datetime.timezone.utc)

    def _check_heartbeats(self) -> dict[str, str]:
        now = datetime.datetime.now(datetime.timezone.utc)
        results: dict[str, str] = {}
        for worker_name, last_heartbeat in self._heartbeats.items():
            age = (now - last_heartbeat).total_seconds()
            results[worker_name] = UP if age < self._heartbeat_timeout else DOWN
        return results

    async def _run_check(self, name: str, check: Callable[[], Any]) -> str:
        try:
            value = check()
            if asyncio.iscoroutine(value):
                value = await asyncio.wait_for(value, timeout=self._check_timeout)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Health check {name!r} failed: {e!r}")
            return DOWN
        return UP if value else DOWN

    async def check_all(self) -> dict[str, str]:
        """Run all checks concurrently and return a name -> up/down map."""
        names = list(self._checks)
        statuses = await asyncio.gather(
            *(self._run_check(name, self._checks[name]) for name in names)
        )
        result = dict(zip(names, statuses))
        result.update(self._check_heartbeats())
        return result

    async def is_ready(self) -> tuple[bool, dict[str, str]]:
        components = await self.check_all()
        return all(v == UP for v in components.values()), components

    async def status(self) -> dict[str, Any]:
        """Return full health status report."""
        healthy, components = await self.is_ready()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "components": components,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "heartbeats": {
                name: ts.isoformat() for name, ts in self._heartbeats.items()
            },
        }
