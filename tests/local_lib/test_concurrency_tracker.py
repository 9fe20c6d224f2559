"""Tests for ConcurrencyTracker counters."""

from __future__ import annotations

import asyncio

import pytest
from local_lib.concurrency_tracker import ConcurrencyTracker


class TestConcurrencyTracker:
    async def test_counts_calls_and_peak(self) -> None:
        tracker = ConcurrencyTracker('TEST')
        release = asyncio.Event()

        async def op() -> None:
            async with tracker.track():
                await release.wait()

        tasks = [asyncio.create_task(op()) for _ in range(4)]
        await asyncio.sleep(0)
        assert tracker.in_flight == 4
        release.set()
        await asyncio.gather(*tasks)

        assert tracker.in_flight == 0
        assert tracker.peak_in_flight == 4
        assert tracker.stats['total_calls'] == 4
        assert tracker.stats['failed_calls'] == 0

    async def test_failures_counted_and_propagated(self) -> None:
        tracker = ConcurrencyTracker('TEST')

        with pytest.raises(RuntimeError):
            async with tracker.track():
                raise RuntimeError('boom')

        assert tracker.stats['failed_calls'] == 1
        assert tracker.in_flight == 0

    async def test_reset(self) -> None:
        tracker = ConcurrencyTracker('TEST')
        async with tracker.track():
            pass
        tracker.reset()
        assert tracker.stats['total_calls'] == 0
        assert tracker.peak_in_flight == 0
