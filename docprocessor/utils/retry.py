"""Retry-with-backoff combinator shared by every external capability call."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    stop_after_attempt,
    wait_exponential,
)

from docprocessor.logging.logger import Log

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryExhaustedError(Exception):
    """Raised when an operation still fails after the last allowed attempt."""

    def __init__(self, description: str, attempts: int, last_error: BaseException | None) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{description} failed after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff; ``timeout`` applies to each attempt separately."""

    max_attempts: int = 10
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    timeout: float = 30.0

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str,
        sleep: Sleep = asyncio.sleep,
    ) -> T:
        return await retry_with_backoff(
            operation,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            timeout=self.timeout,
            multiplier=self.multiplier,
            max_delay=self.max_delay,
            description=description,
            sleep=sleep,
        )


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    base_delay: float,
    timeout: float,
    multiplier: float = 2.0,
    max_delay: float = 60.0,
    description: str = "operation",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Await ``operation()`` until it succeeds or ``max_attempts`` are used up.

    Delays grow as ``base_delay * multiplier ** (attempt - 1)``, capped at
    ``max_delay``. An attempt running longer than ``timeout`` seconds is
    cancelled and counts as a failure.

    Raises:
        RetryExhaustedError: after the last failed attempt, chained to its cause.
    """
    if max_attempts <= 0:
        raise ValueError(f"max_attempts must be positive, got {max_attempts}")

    def _log_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        Log.warning(
            f"Retry #{state.attempt_number} of {description}",
            cause=repr(error),
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=multiplier, max=max_delay),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=False,
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await asyncio.wait_for(operation(), timeout=timeout)
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        raise RetryExhaustedError(
            description, exc.last_attempt.attempt_number, last_error
        ) from last_error
    raise AssertionError("unreachable")  # pragma: no cover
