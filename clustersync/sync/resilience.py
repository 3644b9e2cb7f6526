"""
Resilience utilities: bounded retry with exponential backoff.

The delay before attempt k+1 (after k consecutive failures) is
min(base_delay * 2**k, max_delay). Sleeping is injected so callers can
exercise the retry loop without waiting on the clock.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .logging_manager import get_logger


logger = get_logger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class RetryPolicy:
    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    retry_on_exceptions: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("delays must satisfy 0 <= base_delay_seconds <= max_delay_seconds")

    def compute_backoff(self, failures: int) -> float:
        """Delay to wait after `failures` consecutive failures."""
        return min(self.base_delay_seconds * (2 ** failures), self.max_delay_seconds)

    def new_state(self) -> RetryState:
        return RetryState(policy=self)


@dataclass
class RetryState:
    """Attempt counter and current delay for one write, discarded afterwards."""
    policy: RetryPolicy
    attempts: int = 0
    delay: Optional[float] = None

    def __post_init__(self):
        if self.delay is None:
            self.delay = self.policy.base_delay_seconds

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.policy.max_retries

    def record_failure(self) -> float:
        """Count a failed attempt and return the delay before the next one."""
        self.attempts += 1
        self.delay = self.policy.compute_backoff(self.attempts)
        return self.delay


class RetryExhausted(Exception):
    """Every allowed attempt failed; `last_exception` holds the final cause."""
    def __init__(self, attempts: int, last_exception: BaseException):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(f"Gave up after {attempts} attempts: {last_exception}")


async def with_retry(fn: Callable[[], Awaitable[T]], *, policy: RetryPolicy, sleep: SleepFn = asyncio.sleep, description: str = "operation") -> T:
    """
    Await `fn` until it succeeds or the policy's attempt budget is spent.

    - Retries only on the policy's configured exceptions; anything else propagates.
    - No wait follows the final failed attempt.
    - Raises RetryExhausted carrying the last exception.
    """
    state = policy.new_state()
    while True:
        try:
            return await fn()
        except policy.retry_on_exceptions as exc:  # type: ignore
            delay = state.record_failure()
            if state.exhausted:
                raise RetryExhausted(state.attempts, exc) from exc
            logger.error(
                f"{description} failed, retrying in {delay:.2f}s "
                f"({policy.max_retries - state.attempts} attempts remaining): {exc}"
            )
            await sleep(delay)
