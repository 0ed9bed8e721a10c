"""
Retry-then-fallback wrapper for text-generation API calls.

Every external call in the package goes through RetryingExternalCaller:

    outcome = await caller.call(
        lambda: client.complete_json(SYSTEM_PROMPT, prompt),
        fallback=lambda: local_guess(text),
        operation_name="parse_cv",
    )

The operation is attempted up to max_retries + 1 times with exponential
backoff plus random jitter (tenacity). When the budget is used up the
fallback produces the value and the Outcome is DEGRADED. Local validation
errors (InvalidInputError) are never retried.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from career_copilot.common.circuit_breaker import CircuitBreaker, CircuitOpenError
from career_copilot.common.config import Config
from career_copilot.common.error_handling import (
    InvalidInputError,
    MalformedResponseError,
    RetryExhaustedError,
)
from career_copilot.common.metrics import MatchingMetrics
from career_copilot.common.outcome import Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
Fallback = Callable[[], T]
SleepFn = Callable[[float], Awaitable[Any]]

NOT_CONFIGURED_REASON = "text-generation API not configured"


class RetryingExternalCaller:
    """
    Bounded retry with exponential backoff and jitter, then local fallback.

    Delay before retry n (1-based) is base_delay * 2**(n-1) (capped at
    max_delay) plus uniform(0, jitter) seconds.
    """

    def __init__(
        self,
        name: str = "openai",
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        jitter: Optional[float] = None,
        max_delay: Optional[float] = None,
        sleep: Optional[SleepFn] = None,
        breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[MatchingMetrics] = None,
    ):
        """
        Args:
            name: Label for log lines
            max_retries: Retries after the first attempt (Config.LLM_MAX_RETRIES)
            base_delay: Backoff base in seconds (Config.LLM_RETRY_BASE_SECONDS)
            jitter: Max random extra delay (Config.LLM_RETRY_JITTER_SECONDS)
            max_delay: Cap for the exponential term (Config.LLM_RETRY_MAX_DELAY_SECONDS)
            sleep: Awaitable sleep function; tests pass a no-op
            breaker: Optional circuit breaker shared by all calls of this caller
            metrics: Optional metrics sink for retry/fallback counts
        """
        self.name = name
        self.max_retries = Config.LLM_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = Config.LLM_RETRY_BASE_SECONDS if base_delay is None else base_delay
        self.jitter = Config.LLM_RETRY_JITTER_SECONDS if jitter is None else jitter
        self.max_delay = Config.LLM_RETRY_MAX_DELAY_SECONDS if max_delay is None else max_delay
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.breaker = breaker
        self.metrics = metrics
        self._sleep: SleepFn = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def _retrying(self, operation_name: str) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=(
                wait_exponential(multiplier=self.base_delay, max=self.max_delay)
                + wait_random(0, self.jitter)
            ),
            retry=retry_if_not_exception_type((InvalidInputError, CircuitOpenError)),
            before_sleep=self._before_sleep(operation_name),
            sleep=self._sleep,
            reraise=True,
        )

    def _before_sleep(self, operation_name: str) -> Callable[[RetryCallState], None]:
        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                f"[{self.name}] {operation_name} attempt "
                f"{retry_state.attempt_number}/{self.max_attempts} failed: {error}. "
                f"Retrying in {delay:.2f}s"
            )
            if self.metrics is not None:
                self.metrics.record_retry()

        return log_retry

    async def _run(self, operation: Operation[T], operation_name: str) -> Tuple[T, int]:
        """
        Run the retry loop.

        Returns:
            (value, number of API calls made)

        Raises:
            InvalidInputError: Propagated unchanged, never retried
            RetryExhaustedError: Budget used up or circuit open
        """
        calls = 0
        breaker = self.breaker

        async def guarded() -> T:
            nonlocal calls
            if breaker is not None and not breaker.can_execute():
                raise CircuitOpenError(
                    breaker.name,
                    breaker.time_remaining(),
                    breaker.get_stats().last_failure_reason,
                )
            calls += 1
            try:
                result = await operation()
            except InvalidInputError:
                raise
            except Exception as e:
                if breaker is not None:
                    breaker.record_failure(e)
                raise
            if breaker is not None:
                breaker.record_success()
            return result

        try:
            async for attempt in self._retrying(operation_name):
                with attempt:
                    result = await guarded()
        except InvalidInputError:
            raise
        except Exception as e:
            raise RetryExhaustedError(operation_name, calls, e) from e

        return result, calls

    async def attempt(self, operation: Operation[T], operation_name: str = "call") -> T:
        """
        Run `operation` under the retry policy with no fallback.

        Raises:
            InvalidInputError: Local validation failure (no retry)
            RetryExhaustedError: Every attempt failed, or the circuit is open
        """
        value, _ = await self._run(operation, operation_name)
        return value

    async def call(
        self,
        operation: Operation[T],
        fallback: Fallback[T],
        operation_name: str = "call",
        unavailable_reason: Optional[str] = None,
    ) -> Outcome[T]:
        """
        Run `operation` under the retry policy, falling back on exhaustion.

        Args:
            operation: Zero-arg coroutine factory doing the API call
            fallback: Zero-arg local computation; must not raise
            operation_name: Label for logs and failure reasons
            unavailable_reason: When set, skip the API entirely and degrade
                with this reason (e.g. no API key)

        Returns:
            Outcome.ok with the API value, Outcome.degraded with the fallback
            value, or Outcome.error for rejected input.
        """
        if unavailable_reason:
            return self._degrade(fallback, operation_name, unavailable_reason, attempts=0)

        try:
            value, calls = await self._run(operation, operation_name)
        except InvalidInputError as e:
            logger.warning(f"[{self.name}] {operation_name} rejected input: {e}")
            return Outcome.error(str(e))
        except RetryExhaustedError as e:
            if isinstance(e.last_error, CircuitOpenError):
                reason = f"circuit open: {e.last_error}"
            else:
                reason = str(e)
            return self._degrade(fallback, operation_name, reason, attempts=e.attempts)

        return Outcome.ok(value, attempts=calls)

    def _degrade(
        self,
        fallback: Fallback[T],
        operation_name: str,
        reason: str,
        attempts: int,
    ) -> Outcome[T]:
        logger.warning(f"[{self.name}] {operation_name} using local fallback: {reason}")
        if self.metrics is not None:
            self.metrics.record_fallback()
        return Outcome.degraded(fallback(), reason=reason, attempts=attempts)


def build_service_caller(
    name: str,
    breaker_name: str,
    sleep: Optional[SleepFn] = None,
    metrics: Optional[MatchingMetrics] = None,
) -> RetryingExternalCaller:
    """
    Default caller for one service, guarded by its own circuit breaker.

    The breaker counts provider outages only: malformed answers and rejected
    input never open it, and its threshold is always above the number of
    calls a single retry loop makes.
    """
    caller = RetryingExternalCaller(name=name, sleep=sleep, metrics=metrics)
    caller.breaker = CircuitBreaker(
        breaker_name,
        failure_threshold=max(Config.CIRCUIT_FAILURE_THRESHOLD, caller.max_attempts + 1),
        recovery_timeout=Config.CIRCUIT_RECOVERY_SECONDS,
        excluded_exceptions=(InvalidInputError, MalformedResponseError),
    )
    return caller
