"""JsonlDeadLetterSink — append-only JSON-lines file, fsynced per record."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from ..exceptions import DeadLetterWriteError
from .ports import IDeadLetterSink

if TYPE_CHECKING:
    from .record import DeadLetterRecord

logger = logging.getLogger(__name__)


class JsonlDeadLetterSink(IDeadLetterSink):
    """Writes one JSON document per line to *path*.

    Writes are serialized and run in a worker thread; ``send`` returns after
    the line has been flushed and fsynced.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _append(self, line: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("ab") as fh:
            fh.write(line + b"\n")
            fh.flush()
            os.fsync(fh.fileno())

    async def send(self, record: DeadLetterRecord) -> None:
        line = record.to_json()
        async with self._lock:
            try:
                await asyncio.to_thread(self._append, line)
            except OSError as e:
                raise DeadLetterWriteError(
                    f"Failed to append dead letter to {self._path}: {e}",
                    event_id=record.event_id,
                ) from e
        logger.info(f"Dead letter for {record.event_id} written to {self._path}")

    async def close(self) -> None:
        return None

    async def health_check(self) -> bool:
        directory = self._path.parent
        return directory.is_dir() and os.access(directory, os.W_OK)
