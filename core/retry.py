"""
Retry helper for outbound provider calls

Wraps tenacity so shipping provider and gateway calls share one backoff
policy. Only errors that ``core.errors.is_retryable`` accepts are retried;
validation and signature failures surface immediately.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from core.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 0.2


DEFAULT_RETRY_POLICY = RetryPolicy()


def _log_retry(operation: str):
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            f"{operation} failed (attempt {state.attempt_number}), "
            f"retrying in {state.next_action.sleep:.1f}s: {error}"
        )
    return before_sleep


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    operation: str,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> T:
    """Run ``fn`` with exponential backoff, re-raising the last error"""
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(multiplier=policy.base_delay, min=policy.base_delay, max=policy.max_delay)
        + wait_random(0, policy.base_delay * policy.jitter),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry(operation),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()


__all__ = ["RetryPolicy", "DEFAULT_RETRY_POLICY", "retry_async"]
