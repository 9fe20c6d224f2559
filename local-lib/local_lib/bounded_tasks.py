"""Bounded async task execution with cooperative cancellation.

Submit coroutine factories without blocking. A semaphore caps how many run at
once; a shared CancellationToken lets the first failure stop work that has not
started yet. In-flight units are never interrupted, only their results are
discarded by the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from local_lib.concurrency_tracker import ConcurrencyTracker

__all__ = [
    'BoundedTaskRunner',
    'CancellationToken',
    'OperationCancelledError',
]

logger = logging.getLogger(__name__)


class OperationCancelledError(Exception):
    """Raised by a unit of work that observed a cancelled token before starting."""


class CancellationToken:
    """One-shot cancellation signal shared by every unit of a single run.

    Once cancelled, stays cancelled. The first reason wins.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: BaseException | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> BaseException | None:
        """Error that triggered cancellation, if any."""
        return self._reason

    def cancel(self, reason: BaseException | None = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token has been cancelled."""
        if self._cancelled:
            raise OperationCancelledError('Operation was cancelled') from self._reason


class BoundedTaskRunner[T]:
    """Run async units with a fixed concurrency ceiling.

    Lifecycle: create one per operation. submit() schedules work and returns
    immediately; join() waits for every submitted unit and raises the first
    real failure. Each unit checks the token before acquiring its slot and
    again after, so once the token is cancelled no queued unit starts.

    Usage:
        token = CancellationToken()
        runner = BoundedTaskRunner[int]('EMBED', capacity=50, token=token)
        for item in items:
            runner.submit(lambda item=item: work(item))
        results = await runner.join()
    """

    def __init__(
        self,
        name: str,
        capacity: int,
        *,
        token: CancellationToken | None = None,
        cancel_on_error: bool = True,
    ) -> None:
        """Initialize runner.

        Args:
            name: Identifier for logging (e.g., "EMBED").
            capacity: Maximum units running at once.
            token: Shared cancellation token. A fresh one is created if omitted.
            cancel_on_error: Cancel the token when a unit fails.
        """
        if capacity < 1:
            raise ValueError(f'capacity must be >= 1, got {capacity}')
        self._name = name
        self._capacity = capacity
        self._token = token or CancellationToken()
        self._cancel_on_error = cancel_on_error
        self._semaphore = asyncio.Semaphore(capacity)
        self._tracker = ConcurrencyTracker(name, logger=logger)
        self._tasks: list[asyncio.Task[T]] = []
        self._first_error: BaseException | None = None

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def peak_in_flight(self) -> int:
        """Highest number of units observed running at the same time."""
        return self._tracker.peak_in_flight

    def submit(self, factory: Callable[[], Awaitable[T]]) -> None:
        """Schedule a unit of work.

        The factory is only called once a slot is free and the token is still
        live, so a unit that never starts never creates its coroutine.
        """
        self._tasks.append(asyncio.create_task(self._run(factory)))

    async def _run(self, factory: Callable[[], Awaitable[T]]) -> T:
        self._token.raise_if_cancelled()
        async with self._semaphore:
            self._token.raise_if_cancelled()
            async with self._tracker.track():
                try:
                    return await factory()
                except OperationCancelledError:
                    raise
                except Exception as exc:
                    # Trip the token before the slot is released so no waiter starts
                    self._record_failure(exc)
                    raise

    def _record_failure(self, exc: Exception) -> None:
        """Capture first real error and cancel the token."""
        if self._first_error is None:
            self._first_error = exc
            logger.warning(f'[{self._name}] Unit failed, cancelling remaining work: {type(exc).__name__}: {exc}')
        if self._cancel_on_error:
            self._token.cancel(exc)

    async def join(self) -> Sequence[T]:
        """Wait for every submitted unit to settle.

        Returns:
            Results in submission order.

        Raises:
            The first unit error, once all units have settled.
            OperationCancelledError: If the token was cancelled externally and
                some units never ran.
        """
        outcomes = await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tracker.log_summary()
        if self._first_error is not None:
            raise self._first_error
        results: list[T] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            results.append(outcome)
        return results

    @property
    def pending_count(self) -> int:
        """Number of units not yet settled."""
        return sum(1 for task in self._tasks if not task.done())
