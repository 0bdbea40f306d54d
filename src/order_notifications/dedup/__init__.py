"""Dedup stores — remember successfully dispatched event ids for a bounded time."""

from __future__ import annotations

from .memory import InMemoryDedupStore
from .ports import IDedupStore

__all__ = ["IDedupStore", "InMemoryDedupStore"]
