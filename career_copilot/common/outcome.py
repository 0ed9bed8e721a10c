"""
Outcome: explicit result type for operations with a fallback path.

An Outcome tells the caller not only what the answer is but which code path
produced it:

- OK:       the text-generation API answered
- DEGRADED: the local fallback answered; `reason` says why
- ERROR:    the input was rejected; there is no value

Usage:
    outcome = parser.parse(cv_text)
    if outcome.is_degraded:
        logger.info(f"Heuristic parse used: {outcome.reason}")
    parsed = outcome.unwrap()
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from career_copilot.common.error_handling import InvalidInputError

T = TypeVar("T")
U = TypeVar("U")


class OutcomeStatus(str, Enum):
    """Which path produced the value."""
    OK = "ok"
    DEGRADED = "degraded"
    ERROR = "error"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Value plus provenance. Build with Outcome.ok / .degraded / .error."""

    status: OutcomeStatus
    value: Optional[T] = None
    reason: Optional[str] = None
    attempts: int = 0
    cached: bool = False

    @classmethod
    def ok(cls, value: T, attempts: int = 1, cached: bool = False) -> "Outcome[T]":
        return cls(OutcomeStatus.OK, value=value, attempts=attempts, cached=cached)

    @classmethod
    def degraded(cls, value: T, reason: str, attempts: int = 0) -> "Outcome[T]":
        return cls(OutcomeStatus.DEGRADED, value=value, reason=reason, attempts=attempts)

    @classmethod
    def error(cls, reason: str) -> "Outcome[Any]":
        return cls(OutcomeStatus.ERROR, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    @property
    def is_degraded(self) -> bool:
        return self.status == OutcomeStatus.DEGRADED

    @property
    def is_error(self) -> bool:
        return self.status == OutcomeStatus.ERROR

    @property
    def has_value(self) -> bool:
        return self.status != OutcomeStatus.ERROR

    def unwrap(self) -> T:
        """Return the value (AI or fallback). Raises InvalidInputError on ERROR."""
        if self.is_error:
            raise InvalidInputError(self.reason or "invalid input")
        return self.value  # type: ignore[return-value]

    def map(self, func: Callable[[T], U]) -> "Outcome[U]":
        """Transform the value, keeping status and provenance."""
        if self.is_error:
            return self  # type: ignore[return-value]
        return Outcome(
            self.status,
            value=func(self.value),  # type: ignore[arg-type]
            reason=self.reason,
            attempts=self.attempts,
            cached=self.cached,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "value": _dump(self.value),
            "reason": self.reason,
            "attempts": self.attempts,
            "cached": self.cached,
        }


def _dump(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value
