"""
Unit tests for career_copilot/job_matching/batch.py

Tests:
- Happy path: one grouped call per batch, results in input order
- Failed batch degrades to one single-item call per item
- Wrong-length grouped results count as a failure
- Item-level fallback and failure records
- Delay between batches, none after the last
"""

import pytest

from career_copilot.common.error_handling import ExternalServiceError
from career_copilot.common.metrics import MatchingMetrics
from career_copilot.common.retrying_caller import RetryingExternalCaller
from career_copilot.job_matching.batch import BatchOrchestrator, ItemState


class FakeBackend:
    """Grouped and single-item operations with scripted failures."""

    def __init__(self, batch_fails=False, failing_items=(), short_batch=False):
        self.batch_fails = batch_fails
        self.failing_items = set(failing_items)
        self.short_batch = short_batch
        self.batch_calls = []
        self.item_calls = []

    async def process_batch(self, batch):
        self.batch_calls.append(list(batch))
        if self.batch_fails:
            raise ExternalServiceError("batch endpoint down", status_code=503)
        results = [f"api:{item}" for item in batch]
        return results[:-1] if self.short_batch else results

    async def process_item(self, item):
        self.item_calls.append(item)
        if item in self.failing_items:
            raise ExternalServiceError(f"item {item} failed")
        return f"single:{item}"

    @staticmethod
    def fallback_item(item):
        return f"local:{item}"


def make_orchestrator(no_sleep, max_retries=1, batch_size=8, batch_delay=0.5, metrics=None):
    caller = RetryingExternalCaller(
        name="test",
        max_retries=max_retries,
        base_delay=0.0,
        jitter=0.0,
        sleep=no_sleep,
        metrics=metrics,
    )
    return BatchOrchestrator(caller, batch_size=batch_size, batch_delay=batch_delay, sleep=no_sleep)


async def run(orchestrator, backend, items):
    return await orchestrator.run(
        items,
        process_batch=backend.process_batch,
        process_item=backend.process_item,
        fallback_item=backend.fallback_item,
        item_key=lambda item: f"item-{item}",
    )


class TestBatchOrchestratorInit:
    """Tests for constructor validation."""

    def test_rejects_zero_batch_size(self, no_sleep):
        """Should reject batch_size < 1."""
        with pytest.raises(ValueError):
            make_orchestrator(no_sleep, batch_size=0)

    def test_batch_count_for(self, no_sleep):
        """Should round the batch count up."""
        orchestrator = make_orchestrator(no_sleep, batch_size=8)

        assert orchestrator.batch_count_for(0) == 0
        assert orchestrator.batch_count_for(8) == 1
        assert orchestrator.batch_count_for(17) == 3


class TestBatchOrchestratorHappyPath:
    """Tests for successful grouped calls."""

    @pytest.mark.asyncio
    async def test_one_call_per_batch(self, no_sleep):
        """Should make ceil(n / batch_size) grouped calls and no single calls."""
        orchestrator = make_orchestrator(no_sleep, batch_size=3)
        backend = FakeBackend()

        report = await run(orchestrator, backend, list(range(7)))

        assert [len(b) for b in backend.batch_calls] == [3, 3, 1]
        assert backend.item_calls == []
        assert report.values == [f"api:{i}" for i in range(7)]
        assert report.done_count == 7
        assert report.batch_count == 3
        assert all(outcome.is_ok for outcome in report.outcomes)

    @pytest.mark.asyncio
    async def test_delay_between_batches_only(self, no_sleep):
        """Should sleep between batches but not after the last one."""
        orchestrator = make_orchestrator(no_sleep, batch_size=3, batch_delay=0.5)

        await run(orchestrator, FakeBackend(), list(range(7)))

        assert no_sleep.delays == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_empty_input(self, no_sleep):
        """Should return an empty report without calling anything."""
        orchestrator = make_orchestrator(no_sleep)
        backend = FakeBackend()

        report = await run(orchestrator, backend, [])

        assert report.outcomes == []
        assert report.batch_count == 0
        assert backend.batch_calls == []


class TestBatchOrchestratorDegradation:
    """Tests for failed grouped calls."""

    @pytest.mark.asyncio
    async def test_failed_batch_tries_each_item_once(self, no_sleep):
        """Should retry the batch, then make exactly one call per item."""
        orchestrator = make_orchestrator(no_sleep, max_retries=1, batch_size=8)
        backend = FakeBackend(batch_fails=True)

        report = await run(orchestrator, backend, list(range(8)))

        assert len(backend.batch_calls) == 2
        assert backend.item_calls == list(range(8))
        assert report.values == [f"single:{i}" for i in range(8)]
        assert report.degraded_batches == 1
        assert report.failed_count == 0

    @pytest.mark.asyncio
    async def test_every_item_gets_a_value(self, no_sleep):
        """Should fall back locally for items whose single call fails."""
        metrics = MatchingMetrics()
        orchestrator = make_orchestrator(no_sleep, metrics=metrics)
        backend = FakeBackend(batch_fails=True, failing_items={2, 5})

        report = await run(orchestrator, backend, list(range(8)))

        assert len(report.outcomes) == 8
        assert report.values[2] == "local:2"
        assert report.values[5] == "local:5"
        assert report.values[0] == "single:0"
        assert report.states[2] == ItemState.FAILED
        assert report.outcomes[2].is_degraded
        assert report.failed_count == 2
        assert [f.item_key for f in report.failures] == ["item-2", "item-5"]
        assert metrics.fallback_count == 2

    @pytest.mark.asyncio
    async def test_short_batch_result_is_a_failure(self, no_sleep):
        """Should treat a wrong number of grouped results as a failed attempt."""
        orchestrator = make_orchestrator(no_sleep, max_retries=2)
        backend = FakeBackend(short_batch=True)

        report = await run(orchestrator, backend, list(range(4)))

        assert len(backend.batch_calls) == 3
        assert backend.item_calls == [0, 1, 2, 3]
        assert report.values == [f"single:{i}" for i in range(4)]

    @pytest.mark.asyncio
    async def test_only_failing_batch_degrades(self, no_sleep):
        """Should keep grouped results of other batches."""
        orchestrator = make_orchestrator(no_sleep, max_retries=0, batch_size=2)
        backend = FakeBackend()
        original = backend.process_batch

        async def second_batch_fails(batch):
            if batch[0] == 2:
                raise ExternalServiceError("flaky")
            return await original(batch)

        report = await orchestrator.run(
            [0, 1, 2, 3, 4, 5],
            process_batch=second_batch_fails,
            process_item=backend.process_item,
            fallback_item=backend.fallback_item,
        )

        assert report.values == ["api:0", "api:1", "single:2", "single:3", "api:4", "api:5"]
        assert report.degraded_batches == 1
        assert report.to_dict()["done"] == 6
