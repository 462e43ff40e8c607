"""Retry policy for provider calls.

Both the embedding and the generation boundary go through
``call_with_retry``. Only overload signals are retried (HTTP 503 and
per-call timeouts); the wait grows linearly with the attempt number and
is capped, so with the defaults the delays are 5s, 10s, 15s, 20s.
"""
import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from docqa.errors import ProviderOverloaded, RetriesExhausted

logger = structlog.get_logger()

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Capped linear backoff for overloaded provider calls."""

    max_attempts: int = Field(5, ge=1, description="Total attempts, first call included")
    base_delay: float = Field(5.0, ge=0.0, description="Delay unit in seconds")
    max_delay: float = Field(30.0, ge=0.0, description="Upper bound for a single delay")
    timeout: Optional[float] = Field(
        None, gt=0.0, description="Per-call timeout in seconds (None = unbounded)"
    )

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * attempt, self.max_delay)

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Only overload is transient; quota and other failures are terminal."""
        return isinstance(error, ProviderOverloaded)


async def _call_once(fn: Callable[[], Awaitable[T]], timeout: Optional[float]) -> T:
    if timeout is None:
        return await fn()
    try:
        return await asyncio.wait_for(fn(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ProviderOverloaded(f"Provider call timed out after {timeout}s") from e


def _log_before_sleep(operation: str):
    def before_sleep(retry_state) -> None:
        error = retry_state.outcome.exception()
        logger.warning(
            "provider_overloaded_retrying",
            operation=operation,
            attempt=retry_state.attempt_number,
            delay_seconds=retry_state.next_action.sleep,
            error=str(error),
        )

    return before_sleep


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    operation: str = "provider_call",
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Run ``fn`` under the retry policy.

    Args:
        fn: Zero-argument coroutine function performing one provider call
        policy: Retry policy (defaults to ``RetryPolicy()``)
        operation: Name used in log events and in the exhaustion error
        sleep: Awaitable sleep function (defaults to ``asyncio.sleep``)

    Returns:
        Whatever ``fn`` returns on its first successful attempt

    Raises:
        RetriesExhausted: If every attempt failed with an overload signal
        ProviderQuotaExceeded: Immediately, on a quota signal
        ProviderOther: Immediately, on any other provider failure
    """
    policy = policy or RetryPolicy()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_incrementing(
            start=policy.base_delay,
            increment=policy.base_delay,
            max=policy.max_delay,
        ),
        retry=retry_if_exception_type(ProviderOverloaded),
        before_sleep=_log_before_sleep(operation),
        sleep=sleep or asyncio.sleep,
    )

    try:
        return await retrying(_call_once, fn, policy.timeout)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        logger.error(
            "provider_retries_exhausted",
            operation=operation,
            attempts=policy.max_attempts,
            error=str(last_error),
        )
        raise RetriesExhausted(operation, policy.max_attempts) from last_error
