"""Exponential-backoff retry wrapper for webhook handlers and integrations

Delay before attempt n+1 is min(base_delay * 2**(n-1) + jitter, max_delay),
with jitter drawn uniformly from [0, policy.jitter]. Exceptions derived from
NonRetryableError are never retried.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_exponential_jitter,
)

from app.config import (
    WEBHOOK_MAX_RETRIES,
    WEBHOOK_RETRY_BASE_DELAY,
    WEBHOOK_RETRY_MAX_DELAY,
    WEBHOOK_RETRY_JITTER,
)
from app.features.billing.errors import NonRetryableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings, all delays in seconds"""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("retry delays must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Deterministic part of the wait after a failed attempt (1-based)"""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)

    def _wait_strategy(self):
        if self.jitter > 0:
            # Jitter is added before the cap, so the total never exceeds max_delay
            return wait_exponential_jitter(
                initial=self.base_delay, max=self.max_delay, exp_base=2, jitter=self.jitter
            )
        return wait_exponential(multiplier=self.base_delay, exp_base=2, min=0, max=self.max_delay)


DEFAULT_RETRY_POLICY = RetryPolicy(
    max_retries=WEBHOOK_MAX_RETRIES,
    base_delay=WEBHOOK_RETRY_BASE_DELAY,
    max_delay=WEBHOOK_RETRY_MAX_DELAY,
    jitter=WEBHOOK_RETRY_JITTER,
)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    operation: str = "operation",
) -> T:
    """
    Run fn until it succeeds or policy.max_retries attempts have been made.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt
        policy: Attempt count and backoff settings
        sleep: Awaitable sleep used between attempts (swapped out in tests)
        operation: Name used in log lines

    Returns:
        Whatever fn returns on the first successful attempt

    Raises:
        The last exception raised by fn, unchanged
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries),
        wait=policy._wait_strategy(),
        retry=retry_if_not_exception_type(NonRetryableError),
        sleep=sleep,
        reraise=True,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )

    async for attempt in retrying:
        with attempt:
            attempt_number = attempt.retry_state.attempt_number
            if attempt_number > 1:
                logger.info(f"Retry: {operation} attempt {attempt_number}/{policy.max_retries}")
            return await fn()

    # AsyncRetrying either returns from inside the loop or re-raises
    raise RuntimeError(f"Retry loop for {operation} exited without a result")
