"""Backoff policy for embedding calls.

Every network call made by the embedding pipeline runs through
`with_backoff`. The schedule is exponential from `base_delay` with
`multiplier` growth and optional full jitter; exhausting `max_attempts`
re-raises the last error unchanged so callers can still branch on its type.

ConfigurationError and OperationCancelledError are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Literal

import pydantic
import tenacity
from local_lib import OperationCancelledError

from vector_index.errors import ConfigurationError, RateLimitError
from vector_index.schemas.base import StrictModel

__all__ = [
    'BackoffPolicy',
    'JitterStrategy',
    'with_backoff',
]

logger = logging.getLogger(__name__)

type JitterStrategy = Literal['full', 'none']

# Errors that skip retry entirely
NON_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (ConfigurationError, OperationCancelledError)


class BackoffPolicy(StrictModel):
    """Retry schedule for a single call.

    Delay before retry n (1-based) is base_delay * multiplier ** (n - 1),
    capped at max_delay. With full jitter, the actual delay is drawn uniformly
    from [0, that value].
    """

    max_attempts: int = pydantic.Field(default=5, ge=1)
    base_delay: float = pydantic.Field(default=1.0, ge=0)  # Seconds
    multiplier: float = pydantic.Field(default=1.5, ge=1)
    max_delay: float = 60.0
    jitter: JitterStrategy = 'full'

    def wait_strategy(self) -> tenacity.wait.wait_base:
        """Tenacity wait strategy implementing this schedule."""
        if self.jitter == 'full':
            return tenacity.wait_random_exponential(
                multiplier=self.base_delay,
                exp_base=self.multiplier,
                max=self.max_delay,
            )
        return tenacity.wait_exponential(
            multiplier=self.base_delay,
            exp_base=self.multiplier,
            min=0,
            max=self.max_delay,
        )


async def with_backoff[T](
    operation: Callable[[], Awaitable[T]],
    policy: BackoffPolicy,
    *,
    label: str = 'call',
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run `operation` under `policy`, retrying failed attempts.

    Args:
        operation: Zero-argument coroutine factory. Called once per attempt.
        policy: Attempt budget and delay schedule.
        label: Short name for retry log lines.
        sleep: Awaitable sleep used between attempts. Tests pass a no-op.

    Returns:
        The first successful result.

    Raises:
        ConfigurationError: Immediately, without retry.
        OperationCancelledError: Immediately, if the operation saw a cancelled token.
        Exception: The last attempt's error once the budget is exhausted.
    """
    retrying = tenacity.AsyncRetrying(
        retry=tenacity.retry_if_not_exception_type(NON_RETRYABLE_ERRORS),
        stop=tenacity.stop_after_attempt(policy.max_attempts),
        wait=policy.wait_strategy(),
        before_sleep=_log_retry(label),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(operation)


def _log_retry(label: str) -> Callable[[tenacity.RetryCallState], None]:
    def log(retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if exc is None:
            return
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        kind = 'rate limited' if isinstance(exc, RateLimitError) else 'failed'
        logger.warning(
            f'[RETRY] {label} attempt {retry_state.attempt_number} {kind}: '
            f'{type(exc).__name__}: {exc} (next in {delay:.2f}s)'
        )

    return log
