"""
Batch orchestrator for many-item external calls.

Items are processed in fixed-size batches. Each batch gets one grouped call
under the retry policy; when that fails for good the batch degrades item by
item:

    batch call (with retries)
      -> on exhaustion: one single-item call per item
         -> on failure: local fallback for that item (recorded as a failure)

A short delay separates consecutive batches to stay under provider rate
limits. Every input item always ends with a value.

Usage:
    orchestrator = BatchOrchestrator(caller, batch_size=8)
    report = await orchestrator.run(
        jobs,
        process_batch=score_jobs_together,
        process_item=score_one_job,
        fallback_item=heuristic_score,
        item_key=lambda job: job.id,
    )
    results = report.values
"""

import asyncio
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from career_copilot.common.config import Config
from career_copilot.common.error_handling import (
    FailureCollector,
    FailureRecord,
    MalformedResponseError,
    RetryExhaustedError,
)
from career_copilot.common.logger import get_logger
from career_copilot.common.outcome import Outcome
from career_copilot.common.retrying_caller import RetryingExternalCaller, SleepFn
from career_copilot.common.utils import chunked

I = TypeVar("I")
R = TypeVar("R")


class ItemState(str, Enum):
    """Lifecycle of one item: pending until it has a value."""
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"  # value came from the local fallback


@dataclass
class BatchReport(Generic[R]):
    """Per-item outcomes in input order, plus batch bookkeeping."""

    outcomes: List[Outcome[R]] = field(default_factory=list)
    states: List[ItemState] = field(default_factory=list)
    failures: List[FailureRecord] = field(default_factory=list)
    batch_count: int = 0
    degraded_batches: int = 0

    @property
    def values(self) -> List[R]:
        return [outcome.value for outcome in self.outcomes]  # type: ignore[misc]

    @property
    def done_count(self) -> int:
        return sum(1 for state in self.states if state == ItemState.DONE)

    @property
    def failed_count(self) -> int:
        return sum(1 for state in self.states if state == ItemState.FAILED)

    def to_dict(self) -> dict:
        return {
            "items": len(self.outcomes),
            "done": self.done_count,
            "failed": self.failed_count,
            "batch_count": self.batch_count,
            "degraded_batches": self.degraded_batches,
            "failures": [f.to_dict() for f in self.failures],
        }


class BatchOrchestrator:
    """
    Runs grouped external calls with bounded retry and per-item degradation.

    The grouped call goes through `caller.attempt` (full retry budget).
    Single-item calls after a failed batch are tried exactly once each and
    bypass the circuit breaker, so one failing item cannot cut off the rest.
    """

    def __init__(
        self,
        caller: RetryingExternalCaller,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        sleep: Optional[SleepFn] = None,
        component: str = "batch",
    ):
        self.caller = caller
        self.batch_size = Config.MATCH_BATCH_SIZE if batch_size is None else batch_size
        self.batch_delay = (
            Config.MATCH_BATCH_DELAY_SECONDS if batch_delay is None else batch_delay
        )
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self.component = component
        self._sleep: SleepFn = sleep or asyncio.sleep
        self._item_caller = RetryingExternalCaller(
            name=f"{caller.name}-item",
            max_retries=0,
            sleep=self._sleep,
            metrics=caller.metrics,
        )
        self._logger = get_logger(__name__, component=component)

    def batch_count_for(self, item_count: int) -> int:
        return math.ceil(item_count / self.batch_size) if item_count else 0

    async def run(
        self,
        items: List[I],
        process_batch: Callable[[List[I]], Awaitable[List[R]]],
        process_item: Callable[[I], Awaitable[R]],
        fallback_item: Callable[[I], R],
        item_key: Optional[Callable[[I], Any]] = None,
    ) -> BatchReport[R]:
        """
        Process every item, batch by batch.

        Args:
            items: Inputs, in the order results should come back
            process_batch: Grouped external call; must return one result per
                item, in order. A wrong-length result counts as a failure.
            process_item: Single-item external call used after a batch fails
            fallback_item: Local computation; must not raise
            item_key: Label for failure records (defaults to the list index)

        Returns:
            BatchReport with exactly len(items) outcomes
        """
        report: BatchReport[R] = BatchReport(
            outcomes=[None] * len(items),  # type: ignore[list-item]
            states=[ItemState.PENDING] * len(items),
        )
        failures = FailureCollector(self.component, logger=self._logger.logger)

        batches = list(chunked(list(items), self.batch_size))
        report.batch_count = len(batches)
        self._logger.info(
            f"Processing {len(items)} items in {len(batches)} batch(es) of up to {self.batch_size}"
        )

        offset = 0
        for index, batch in enumerate(batches):
            await self._run_batch(batch, offset, report, failures,
                                  process_batch, process_item, fallback_item, item_key)
            offset += len(batch)

            if index < len(batches) - 1 and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

        report.failures = list(failures.records)
        self._logger.info(
            f"Batch run finished: {report.done_count} done, {report.failed_count} fell back, "
            f"{report.degraded_batches}/{report.batch_count} batch(es) degraded"
        )
        return report

    async def _run_batch(
        self,
        batch: List[I],
        offset: int,
        report: BatchReport[R],
        failures: FailureCollector,
        process_batch: Callable[[List[I]], Awaitable[List[R]]],
        process_item: Callable[[I], Awaitable[R]],
        fallback_item: Callable[[I], R],
        item_key: Optional[Callable[[I], Any]],
    ) -> None:
        async def grouped() -> List[R]:
            results = await process_batch(batch)
            if not isinstance(results, list) or len(results) != len(batch):
                got = len(results) if isinstance(results, list) else type(results).__name__
                raise MalformedResponseError(
                    f"Batch returned {got} results for {len(batch)} items"
                )
            return results

        try:
            results = await self.caller.attempt(grouped, operation_name="process_batch")
        except RetryExhaustedError as e:
            report.degraded_batches += 1
            self._logger.warning(
                f"Batch at offset {offset} failed, falling back to individual processing: {e}"
            )
            await self._degrade_batch(batch, offset, report, failures,
                                      process_item, fallback_item, item_key)
            return

        for position, result in enumerate(results):
            report.outcomes[offset + position] = Outcome.ok(result)
            report.states[offset + position] = ItemState.DONE

    async def _degrade_batch(
        self,
        batch: List[I],
        offset: int,
        report: BatchReport[R],
        failures: FailureCollector,
        process_item: Callable[[I], Awaitable[R]],
        fallback_item: Callable[[I], R],
        item_key: Optional[Callable[[I], Any]],
    ) -> None:
        for position, item in enumerate(batch):
            index = offset + position
            key = str(item_key(item)) if item_key else str(index)
            try:
                value = await self._item_caller.attempt(
                    lambda item=item: process_item(item),
                    operation_name="process_item",
                )
            except Exception as e:
                failures.add("process_item", e, item_key=key)
                if self.caller.metrics is not None:
                    self.caller.metrics.record_fallback()
                report.outcomes[index] = Outcome.degraded(fallback_item(item), reason=str(e))
                report.states[index] = ItemState.FAILED
                continue

            report.outcomes[index] = Outcome.ok(value)
            report.states[index] = ItemState.DONE
