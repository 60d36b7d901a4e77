"""Retry utilities with tenacity."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ..config import Settings
from ..models import ExhaustedRetriesError, ModelUnavailableError, TransientRemoteError

logger = logging.getLogger(__name__)


def is_transient_error(error: BaseException) -> bool:
    """Rate limits and timeouts are worth waiting out."""
    return isinstance(error, TransientRemoteError)


def is_model_missing_error(error: BaseException) -> bool:
    """The endpoint does not serve the requested model."""
    return isinstance(error, ModelUnavailableError)


@dataclass
class RetryPolicy:
    """Bounded exponential backoff: base_delay, 2*base_delay, 4*base_delay, ..."""

    max_attempts: int = 5
    base_delay: float = 2.0
    max_delay: float = 120.0
    jitter: bool = False
    is_transient: Callable[[BaseException], bool] = field(default=is_transient_error)
    is_model_missing: Callable[[BaseException], bool] = field(default=is_model_missing_error)

    def wait_strategy(self):
        wait = wait_exponential(multiplier=self.base_delay, max=self.max_delay)
        if self.jitter:
            wait = wait + wait_random(0, 1)
        return wait


def create_retry_policy(config: Settings, driver_name: Optional[str] = None) -> RetryPolicy:
    """Build the retry policy for a driver from settings."""
    base_delay = (
        config.retry_base_delay_for(driver_name) if driver_name else config.llm_retry_base_delay
    )
    return RetryPolicy(
        max_attempts=config.llm_max_retries,
        base_delay=base_delay,
        max_delay=config.llm_retry_max_wait,
    )


async def retry_async(
    operation: Callable[[], Awaitable[Any]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """Run ``operation`` until it succeeds, fails permanently or the policy gives up.

    ``operation`` is any zero-argument callable returning an awaitable: an
    ``async def`` function, a lambda around a coroutine call, or a mock.

    Errors the policy does not classify as transient propagate on the first
    occurrence. Exhausting the attempts raises ExhaustedRetriesError chained to
    the last transient error.
    """

    # AsyncRetrying only awaits coroutine functions
    async def attempt() -> Any:
        return await operation()

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait_strategy(),
        retry=retry_if_exception(policy.is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
    )

    try:
        return await retrying(attempt)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        raise ExhaustedRetriesError(
            f"Gave up after {policy.max_attempts} attempts: {last_error}",
            context={"attempts": policy.max_attempts, "last_error": str(last_error)},
        ) from last_error
