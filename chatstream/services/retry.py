from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
RetryHook = Callable[[int, float, Exception], None]


@dataclass(frozen=True)
class BackoffPolicy:
    """Bounded exponential backoff: the n-th retry waits ``base_delay_seconds * 2**n``."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0

    def delay_for(self, retry_number: int) -> float:
        return self.base_delay_seconds * (2**retry_number)


class RetryExhaustedError(Exception):
    """Raised from the last failure once no further attempt will be made."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"gave up after {attempts} attempt(s)")
        self.attempts = attempts


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: BackoffPolicy,
    *,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    should_retry: Callable[[Exception], bool] = lambda exc: True,
    sleep: Sleep = asyncio.sleep,
    on_retry: RetryHook | None = None,
) -> T:
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as exc:
            retries_used = attempt - 1
            if retries_used >= policy.max_retries or not should_retry(exc):
                raise RetryExhaustedError(attempt) from exc
            delay = policy.delay_for(retries_used)
            if on_retry is not None:
                on_retry(attempt, delay, exc)
            await sleep(delay)
