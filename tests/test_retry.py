from __future__ import annotations

import pytest

from chatstream.services.retry import BackoffPolicy, RetryExhaustedError, retry_async
from tests.conftest import RecordingSleep


def test_backoff_delays_double_per_retry() -> None:
    policy = BackoffPolicy(max_retries=3, base_delay_seconds=1.0)

    assert [policy.delay_for(n) for n in range(3)] == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_retry_async_stops_at_ceiling_and_chains_last_failure() -> None:
    sleep = RecordingSleep()
    retries: list[int] = []
    attempts = 0

    async def operation() -> None:
        nonlocal attempts
        attempts += 1
        raise ConnectionError(f"attempt {attempts}")

    with pytest.raises(RetryExhaustedError) as exc_info:
        await retry_async(
            operation,
            BackoffPolicy(max_retries=2, base_delay_seconds=0.5),
            sleep=sleep,
            on_retry=lambda attempt, delay, exc: retries.append(attempt),
        )

    assert exc_info.value.attempts == 3
    assert str(exc_info.value.__cause__) == "attempt 3"
    assert sleep.delays == [0.5, 1.0]
    assert retries == [1, 2]


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_rejected_or_unlisted_errors() -> None:
    sleep = RecordingSleep()

    async def rejected() -> None:
        raise ValueError("permanent")

    with pytest.raises(RetryExhaustedError) as exc_info:
        await retry_async(rejected, BackoffPolicy(), should_retry=lambda exc: False, sleep=sleep)
    assert exc_info.value.attempts == 1

    async def unlisted() -> None:
        raise KeyError("boom")

    with pytest.raises(KeyError):
        await retry_async(unlisted, BackoffPolicy(), retry_on=(ValueError,), sleep=sleep)
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retry_async_returns_first_success() -> None:
    sleep = RecordingSleep()
    outcomes = iter([OSError("flaky"), "ok"])

    async def operation() -> str:
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert await retry_async(operation, BackoffPolicy(base_delay_seconds=2.0), sleep=sleep) == "ok"
    assert sleep.delays == [2.0]
