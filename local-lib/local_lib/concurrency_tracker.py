"""Concurrency tracking for async operations.

Lightweight instrumentation for measuring concurrent calls, latency and
failures without cluttering call sites.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

__all__ = ['ConcurrencyTracker']


class ConcurrencyTracker:
    """Track concurrent operations with minimal call-site overhead.

    Usage:
        tracker = ConcurrencyTracker("OPENROUTER")

        async with tracker.track():
            await api_call()

        tracker.log_summary()
    """

    def __init__(self, name: str, logger: logging.Logger | None = None) -> None:
        """Initialize tracker.

        Args:
            name: Identifier for logging (e.g., "OPENROUTER", "QDRANT").
            logger: Logger instance. Defaults to module logger.
        """
        self.name = name
        self._logger = logger or logging.getLogger(__name__)
        self._in_flight = 0
        self._peak_in_flight = 0
        self._total_calls = 0
        self._failed_calls = 0
        self._total_time = 0.0

    @asynccontextmanager
    async def track(self) -> AsyncIterator[None]:
        """Track a single operation.

        Counts the call, its latency, whether it raised, and the number of
        operations in flight alongside it.
        """
        self._in_flight += 1
        self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
        self._total_calls += 1
        t0 = time.perf_counter()
        try:
            yield
        except BaseException:
            self._failed_calls += 1
            raise
        finally:
            self._total_time += time.perf_counter() - t0
            self._in_flight -= 1

    @property
    def stats(self) -> dict[str, Any]:
        """Current statistics."""
        return {
            'total_calls': self._total_calls,
            'failed_calls': self._failed_calls,
            'max_concurrent': self._peak_in_flight,
            'in_flight': self._in_flight,
            'total_time_s': round(self._total_time, 2),
            'avg_latency_ms': round(self._total_time / self._total_calls * 1000, 1) if self._total_calls else 0,
        }

    @property
    def in_flight(self) -> int:
        """Current number of in-flight operations."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest concurrency observed since creation or last reset."""
        return self._peak_in_flight

    def log_summary(self) -> None:
        """Log final statistics summary, if anything was tracked."""
        if self._total_calls:
            self._logger.debug(f'[{self.name}] FINAL {self.stats}')

    def reset(self) -> None:
        """Reset all counters."""
        self._in_flight = 0
        self._peak_in_flight = 0
        self._total_calls = 0
        self._failed_calls = 0
        self._total_time = 0.0
