"""Bounded exponential-backoff retry for remote calls.

Wait after the n-th failed attempt: initial_delay * backoff ** (n - 1)
(1.0s, 1.5s, 2.25s, ... with the defaults). After the last attempt the
original exception propagates unchanged.

Any exception counts as transient unless a `retry_on` predicate says
otherwise.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_retry(operation: str, retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    next_wait = retry_state.next_action.sleep if retry_state.next_action else None
    logger.warning(
        "Remote call failed, retrying",
        operation=operation,
        attempt=retry_state.attempt_number,
        wait_s=next_wait,
        error=repr(error),
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Reusable retry configuration.

    Attributes:
        attempts: Total attempts, including the first call
        initial_delay: Wait (seconds) after the first failure
        backoff: Multiplier applied to the wait after each further failure
        retry_on: Optional predicate; exceptions it rejects propagate at once
        sleep: Awaitable sleep used between attempts (asyncio.sleep if None)

    Example:
        >>> policy = RetryPolicy(attempts=3, initial_delay=1.0)
        >>> activity = await policy.call(service.get_activity, 42)
    """

    attempts: int = 3
    initial_delay: float = 1.0
    backoff: float = 1.5
    retry_on: Optional[Callable[[BaseException], bool]] = None
    sleep: Optional[Callable[[float], Awaitable[None]]] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.backoff < 1:
            raise ValueError(f"backoff must be >= 1, got {self.backoff}")

    def delays(self) -> List[float]:
        """Waits between attempts, in order (attempts - 1 values)."""
        return [self.initial_delay * self.backoff**n for n in range(self.attempts - 1)]

    def _retrying(self, operation: str) -> AsyncRetrying:
        predicate = self.retry_on or (lambda _e: True)
        return AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.backoff,
                min=0,
                max=float("inf"),
            ),
            retry=retry_if_exception(predicate),
            before_sleep=lambda rs: _log_retry(operation, rs),
            sleep=self.sleep or asyncio.sleep,
            reraise=True,
        )

    async def call(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Call `operation(*args, **kwargs)` with retries.

        Raises:
            Exception: The last error raised by the operation, unchanged
        """
        name = getattr(operation, "__qualname__", repr(operation))
        async for attempt in self._retrying(name):
            with attempt:
                return await operation(*args, **kwargs)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    initial_delay: float = 1.0,
    backoff: float = 1.5,
) -> T:
    """
    Run a zero-argument async operation with bounded retry.

    Args:
        operation: Async callable performing the remote call
        attempts: Total attempts (default 3)
        initial_delay: Seconds to wait after the first failure (default 1.0)
        backoff: Wait multiplier per further failure (default 1.5)

    Returns:
        The operation's result

    Raises:
        Exception: The last failure, unchanged, once attempts are exhausted
    """
    policy = RetryPolicy(attempts=attempts, initial_delay=initial_delay, backoff=backoff)
    return await policy.call(operation)
