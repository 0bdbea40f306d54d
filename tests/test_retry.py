"""Tests for RetryPolicy backoff."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock, patch

import pytest

from order_notifications.retry import RetryPolicy


def test_should_retry_allows_max_retries_attempts_in_total() -> None:
    policy = RetryPolicy(max_retries=5)

    assert [policy.should_retry(n) for n in range(1, 6)] == [True] * 4 + [False]
    assert policy.should_retry(0) is False


def test_base_delay_doubles_and_is_capped() -> None:
    policy = RetryPolicy(base_delay=1.0, max_delay=10.0, jitter=0.0)

    delays = [policy.base_delay_for_attempt(a) for a in range(1, 8)]

    assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0, 10.0]


def test_backoff_without_jitter_is_non_decreasing_and_bounded() -> None:
    policy = RetryPolicy(base_delay=0.5, max_delay=300.0, jitter=0.0)

    delays = [policy.delay_for_attempt(a) for a in range(1, 200)]

    assert all(a <= b for a, b in zip(delays, delays[1:]))
    assert max(delays) == 300.0


def test_attempt_zero_has_no_delay() -> None:
    assert RetryPolicy().delay_for_attempt(0) == 0.0


def test_jitter_stays_within_twenty_percent() -> None:
    policy = RetryPolicy(base_delay=10.0, max_delay=1000.0, jitter=0.2, rng=random.Random(7))

    for _ in range(200):
        delay = policy.delay_for_attempt(1)
        assert 8.0 <= delay <= 12.0


def test_jitter_never_exceeds_cap() -> None:
    policy = RetryPolicy(base_delay=1.0, max_delay=4.0, jitter=0.5, rng=random.Random(1))

    assert all(policy.delay_for_attempt(10) <= 4.0 for _ in range(200))


def test_seeded_rng_is_reproducible() -> None:
    a = RetryPolicy(jitter=0.2, rng=random.Random(42))
    b = RetryPolicy(jitter=0.2, rng=random.Random(42))

    assert [a.delay_for_attempt(3) for _ in range(5)] == [
        b.delay_for_attempt(3) for _ in range(5)
    ]


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"max_retries": 0}, "max_retries"),
        ({"base_delay": -1.0}, ">= 0"),
        ({"base_delay": 10.0, "max_delay": 1.0}, "base_delay must be <= max_delay"),
        ({"jitter": 1.0}, "jitter"),
        ({"jitter": -0.1}, "jitter"),
    ],
)
def test_invalid_arguments(kwargs, message) -> None:
    with pytest.raises(ValueError, match=message):
        RetryPolicy(**kwargs)


@pytest.mark.asyncio
async def test_wait_before_retry_sleeps_for_delay() -> None:
    policy = RetryPolicy(base_delay=2.0, jitter=0.0)
    with patch("order_notifications.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        await policy.wait_before_retry(2)
    sleep.assert_awaited_once_with(4.0)
