"""Tests for BoundedTaskRunner -- concurrency ceiling and cooperative cancellation."""

from __future__ import annotations

import asyncio

import pytest
from local_lib.bounded_tasks import BoundedTaskRunner, CancellationToken, OperationCancelledError


class Boom(Exception):
    pass


class TestConcurrencyCeiling:
    """Never more than `capacity` units run at once."""

    @pytest.mark.parametrize('capacity', [1, 3, 8])
    async def test_peak_never_exceeds_capacity(self, capacity: int) -> None:
        in_flight = 0
        peak = 0

        async def unit(value: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            for _ in range(3):
                await asyncio.sleep(0)
            in_flight -= 1
            return value

        runner = BoundedTaskRunner[int]('TEST', capacity=capacity)
        for i in range(20):
            runner.submit(lambda i=i: unit(i))
        results = await runner.join()

        assert list(results) == list(range(20))
        assert peak == capacity
        assert runner.peak_in_flight == capacity

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match='capacity'):
            BoundedTaskRunner[int]('TEST', capacity=0)

    async def test_join_with_no_units(self) -> None:
        runner = BoundedTaskRunner[int]('TEST', capacity=2)
        assert await runner.join() == []


class TestCancellation:
    """First failure stops every unit that has not started."""

    async def test_failure_prevents_queued_units_from_starting(self) -> None:
        started: list[int] = []

        async def unit(value: int) -> int:
            started.append(value)
            await asyncio.sleep(0)
            if value == 0:
                raise Boom('first unit failed')
            return value

        runner = BoundedTaskRunner[int]('TEST', capacity=1)
        for i in range(10):
            runner.submit(lambda i=i: unit(i))

        with pytest.raises(Boom, match='first unit failed'):
            await runner.join()
        assert started == [0]
        assert runner.token.cancelled
        assert isinstance(runner.token.reason, Boom)

    async def test_in_flight_units_settle(self) -> None:
        finished: list[int] = []

        async def unit(value: int) -> int:
            for _ in range(value + 1):
                await asyncio.sleep(0)
            if value == 0:
                raise Boom('fails first')
            finished.append(value)
            return value

        runner = BoundedTaskRunner[int]('TEST', capacity=3)
        for i in range(6):
            runner.submit(lambda i=i: unit(i))

        with pytest.raises(Boom):
            await runner.join()
        # Units 1 and 2 were already running when unit 0 failed
        assert finished == [1, 2]
        assert runner.pending_count == 0

    async def test_external_cancel_before_start(self) -> None:
        calls = 0

        async def unit() -> int:
            nonlocal calls
            calls += 1
            return 1

        token = CancellationToken()
        token.cancel()
        runner = BoundedTaskRunner[int]('TEST', capacity=2, token=token)
        runner.submit(unit)
        runner.submit(unit)

        with pytest.raises(OperationCancelledError):
            await runner.join()
        assert calls == 0

    async def test_cancel_on_error_disabled_runs_everything(self) -> None:
        started: list[int] = []

        async def unit(value: int) -> int:
            started.append(value)
            if value == 1:
                raise Boom('one')
            return value

        runner = BoundedTaskRunner[int]('TEST', capacity=1, cancel_on_error=False)
        for i in range(4):
            runner.submit(lambda i=i: unit(i))

        with pytest.raises(Boom, match='one'):
            await runner.join()
        assert started == [0, 1, 2, 3]
        assert not runner.token.cancelled

    async def test_first_error_wins(self) -> None:
        async def unit(value: int) -> int:
            await asyncio.sleep(0)
            raise Boom(f'unit {value}')

        runner = BoundedTaskRunner[int]('TEST', capacity=4, cancel_on_error=False)
        for i in range(4):
            runner.submit(lambda i=i: unit(i))

        with pytest.raises(Boom, match='unit 0'):
            await runner.join()


class TestCancellationToken:
    def test_first_reason_wins(self) -> None:
        token = CancellationToken()
        first = Boom('first')
        token.cancel(first)
        token.cancel(Boom('second'))
        assert token.reason is first

    def test_raise_if_cancelled_chains_reason(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel(Boom('why'))
        with pytest.raises(OperationCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert isinstance(exc_info.value.__cause__, Boom)
