"""Tests for logging setup and per-outcome log entries."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

import pytest

from order_notifications.exceptions import ErrorKind
from order_notifications.logging_config import (
    OUTCOME_LOGGER_NAME,
    JsonLogFormatter,
    configure_logging,
    log_outcome,
)
from order_notifications.processor import Outcome, ProcessResult


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_outcome_entry_is_json(caplog) -> None:
    result = ProcessResult(
        outcome=Outcome.RETRY_SCHEDULED,
        event_id="e2",
        attempt_count=2,
        error_kind=ErrorKind.TRANSIENT,
        error="503",
        next_eligible_at=datetime(2024, 1, 1, 0, 0, 2, tzinfo=timezone.utc),
        topic="order.created",
        partition=0,
        offset=12,
    )

    with caplog.at_level(logging.INFO, logger=OUTCOME_LOGGER_NAME):
        log_outcome(result)

    record = caplog.records[-1]
    entry = json.loads(record.getMessage())
    assert record.levelno == logging.INFO
    assert entry["outcome"] == "retry_scheduled"
    assert entry["error_kind"] == "transient"
    assert entry["offset"] == 12
    assert entry["next_eligible_at"] == "2024-01-01T00:00:02+00:00"


@pytest.mark.parametrize(
    ("outcome", "level"),
    [
        (Outcome.DELIVERED, logging.INFO),
        (Outcome.DUPLICATE, logging.INFO),
        (Outcome.REJECTED, logging.WARNING),
        (Outcome.DEAD_LETTERED, logging.WARNING),
    ],
)
def test_outcome_levels(caplog, outcome, level) -> None:
    logger = logging.getLogger("test.outcomes")
    with caplog.at_level(logging.DEBUG, logger="test.outcomes"):
        log_outcome(ProcessResult(outcome=outcome, event_id="e1"), logger)

    assert caplog.records[-1].levelno == level
    assert "next_eligible_at" not in json.loads(caplog.records[-1].getMessage())


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("bad")
    except ValueError:
        record = logging.LogRecord(
            "svc", logging.ERROR, __file__, 1, "failed %s", ("e1",), sys.exc_info()
        )

    entry = json.loads(JsonLogFormatter().format(record))

    assert entry["level"] == "ERROR"
    assert entry["logger"] == "svc"
    assert entry["message"] == "failed e1"
    assert "ValueError: bad" in entry["exc_info"]


def test_configure_logging_installs_single_handler(restore_root_logger) -> None:
    configure_logging("info", json_output=True)
    configure_logging("warning", json_output=True)

    root = restore_root_logger
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JsonLogFormatter)
    assert root.level == logging.WARNING
    assert logging.getLogger("aiokafka").level == logging.WARNING
