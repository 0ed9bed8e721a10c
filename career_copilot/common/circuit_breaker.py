"""
Circuit breaker for the text-generation API.

When the provider is down, every parse or match would otherwise burn its whole
retry budget (with backoff sleeps) before falling back. After enough
consecutive failures the breaker opens and callers go straight to the local
fallback until the recovery timeout has passed.

States:
- CLOSED: calls pass through
- OPEN: calls rejected immediately
- HALF_OPEN: one trial call at a time; success closes, failure reopens

Usage:
    breaker = CircuitBreaker("openai", failure_threshold=5, recovery_timeout=30.0)

    if breaker.can_execute():
        try:
            result = await call_api()
            breaker.record_success()
        except Exception as e:
            breaker.record_failure(e)
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from career_copilot.common.error_handling import ExternalServiceError

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerStats:
    """Counters exposed for metrics."""
    state: CircuitState
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    consecutive_failures: int = 0
    last_failure_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "rejected_calls": self.rejected_calls,
            "consecutive_failures": self.consecutive_failures,
            "last_failure_reason": self.last_failure_reason,
        }


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker with an injectable clock.

    Exceptions listed in `excluded_exceptions` (local validation errors) never
    count as provider failures.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        excluded_exceptions: tuple = (),
        clock: Optional[Callable[[], float]] = None,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.excluded_exceptions = excluded_exceptions
        self._clock = clock or time.time

        self._state = CircuitState.CLOSED
        self._opened_at: Optional[float] = None
        self._half_open_in_flight = False
        self._stats = CircuitBreakerStats(state=CircuitState.CLOSED)

    @property
    def state(self) -> CircuitState:
        """Current state; an OPEN breaker past its timeout reports HALF_OPEN."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.recovery_timeout:
                self._transition_to(CircuitState.HALF_OPEN)
        return self._state

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        self._stats.state = new_state
        self._half_open_in_flight = False
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None
            self._stats.consecutive_failures = 0
        logger.info(f"Circuit '{self.name}' state changed: {old_state.value} -> {new_state.value}")

    def can_execute(self) -> bool:
        """True if a call may go out now. Records a rejection otherwise."""
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state == CircuitState.HALF_OPEN and not self._half_open_in_flight:
            self._half_open_in_flight = True
            return True
        self._stats.rejected_calls += 1
        return False

    def time_remaining(self) -> float:
        """Seconds until an OPEN breaker allows a trial call."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self._clock() - self._opened_at))

    def record_success(self) -> None:
        self._stats.successful_calls += 1
        self._stats.consecutive_failures = 0
        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.CLOSED)
            logger.info(f"Circuit '{self.name}' recovered")

    def record_failure(self, exception: Optional[BaseException] = None) -> None:
        if exception is not None and isinstance(exception, self.excluded_exceptions):
            self._half_open_in_flight = False
            return

        self._stats.failed_calls += 1
        self._stats.consecutive_failures += 1
        self._stats.last_failure_reason = str(exception) if exception else "unknown"

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.OPEN)
            logger.warning(f"Circuit '{self.name}' reopened due to failure: {exception}")
        elif (
            self._state == CircuitState.CLOSED
            and self._stats.consecutive_failures >= self.failure_threshold
        ):
            logger.warning(
                f"Circuit '{self.name}' opening: "
                f"{self._stats.consecutive_failures} consecutive failures"
            )
            self._transition_to(CircuitState.OPEN)

    def reset(self) -> None:
        self._transition_to(CircuitState.CLOSED)
        self._stats = CircuitBreakerStats(state=CircuitState.CLOSED)

    def get_stats(self) -> CircuitBreakerStats:
        self._stats.state = self.state
        return self._stats


class CircuitOpenError(ExternalServiceError):
    """Raised instead of calling the API while the circuit is open."""

    def __init__(self, breaker_name: str, time_remaining: float, last_failure: Optional[str] = None):
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        self.last_failure = last_failure
        super().__init__(
            f"Circuit '{breaker_name}' is OPEN. "
            f"Retry in {time_remaining:.1f}s. "
            f"Last failure: {last_failure or 'unknown'}"
        )
