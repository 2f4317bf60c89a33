"""Tests for the bounded best-effort batch runner"""
import asyncio

import pytest

from weekboard.core.exceptions import PartialBatchFailure
from weekboard.services.batch import MigrationSummary, RolloverSummary, run_bounded
from weekboard.services.rollover import RolloverEngine
from weekboard.services.week import WeekRef

USER_ID = "11111111-1111-1111-1111-111111111111"


class TestRunBounded:

    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        async def worker(n):
            await asyncio.sleep(0.01 * (5 - n))
            return n * 10

        outcomes = await run_bounded([1, 2, 3, 4], worker, concurrency=4)
        assert [o.result for o in outcomes] == [10, 20, 30, 40]
        assert all(o.error is None for o in outcomes)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        running = 0
        peak = 0

        async def worker(n):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return n

        await run_bounded(list(range(10)), worker, concurrency=3)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_failures_are_captured_per_item(self):
        async def worker(n):
            if n % 2:
                raise ValueError(f"odd {n}")
            return n

        outcomes = await run_bounded([0, 1, 2, 3], worker, concurrency=2)
        assert [o.result for o in outcomes if o.error is None] == [0, 2]
        assert [str(o.error) for o in outcomes if o.error is not None] == ["odd 1", "odd 3"]

    @pytest.mark.asyncio
    async def test_engine_respects_pool_size(self, store):
        for i in range(8):
            store.seed(title=f"task {i}")
        await RolloverEngine(store, concurrency=2).rollover_week(USER_ID, WeekRef(2024, 10), WeekRef(2024, 11))
        assert store.max_in_flight == 2


class TestSummaries:

    def test_failure_formatting(self):
        summary = RolloverSummary(from_week="2024-W10", to_week="2024-W11")
        summary.add_failure("t1", RuntimeError("disk full"))
        assert summary.failures[0].error == "RuntimeError: disk full"
        assert summary.operation == "rollover"

    def test_raise_for_failures(self):
        summary = MigrationSummary(from_week="2024-W10", to_week="2024-W12")
        summary.raise_for_failures()

        summary.add_failure("t1", RuntimeError("boom"))
        with pytest.raises(PartialBatchFailure, match="1 item\\(s\\) failed during migration"):
            summary.raise_for_failures()

    def test_counts_are_serialized(self):
        summary = MigrationSummary(from_week="2024-W10", to_week="2024-W12")
        assert summary.model_dump()["counts"] == {"moved": 0, "copied": 0, "failed": 0}
