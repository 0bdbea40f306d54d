"""Partitioned consumption: loop, per-partition workers, offsets and shutdown."""

from .delay_queue import DelayedRetryQueue
from .lifecycle import Lifecycle, LoopState
from .loop import ConsumptionLoop
from .memory import InMemoryMessageSource
from .offsets import PartitionOffsetTracker
from .ports import IMessageSource
from .worker import PartitionWorker

__all__ = [
    "ConsumptionLoop",
    "DelayedRetryQueue",
    "IMessageSource",
    "InMemoryMessageSource",
    "Lifecycle",
    "LoopState",
    "PartitionOffsetTracker",
    "PartitionWorker",
]
