"""Dead-letter records and sinks."""

from __future__ import annotations

from .file import JsonlDeadLetterSink
from .memory import InMemoryDeadLetterSink
from .ports import IDeadLetterSink
from .record import DeadLetterRecord

__all__ = [
    "DeadLetterRecord",
    "IDeadLetterSink",
    "InMemoryDeadLetterSink",
    "JsonlDeadLetterSink",
]
