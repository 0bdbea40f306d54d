"""Logging setup and structured per-outcome log entries."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .processor import ProcessResult

OUTCOME_LOGGER_NAME = "order_notifications.outcomes"

_outcome_log = logging.getLogger(OUTCOME_LOGGER_NAME)

_HUMAN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, message (+ exc_info)."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Install a single stderr handler on the root logger."""
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(_HUMAN_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    # aiokafka is chatty at DEBUG
    if level.upper() != "DEBUG":
        logging.getLogger("aiokafka").setLevel(logging.WARNING)


def log_outcome(result: ProcessResult, logger: logging.Logger | None = None) -> None:
    """Emit one structured entry for a processing outcome.

    Rejections and dead letters log at WARNING; everything else at INFO.
    """
    from .processor import Outcome

    log = logger or _outcome_log
    entry = {
        "event_id": result.event_id,
        "outcome": result.outcome.value,
        "attempt_count": result.attempt_count,
        "error_kind": result.error_kind.value if result.error_kind else None,
        "error": result.error,
        "topic": result.topic,
        "partition": result.partition,
        "offset": result.offset,
    }
    if result.next_eligible_at is not None:
        entry["next_eligible_at"] = result.next_eligible_at.isoformat()

    level = (
        logging.WARNING
        if result.outcome in (Outcome.REJECTED, Outcome.DEAD_LETTERED)
        else logging.INFO
    )
    log.log(level, json.dumps(entry, default=str))
