"""
Error taxonomy and failure bookkeeping for the matching core.

Three kinds of failure flow through the code:
- transient API errors (ExternalServiceError): retried, then degraded to a
  local fallback, never surfaced to the caller as a hard failure
- malformed API responses (MalformedResponseError): count as one failed
  attempt and consume a retry
- local validation errors (InvalidInputError): fail fast, no retry, no fallback
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


class CopilotError(Exception):
    """Base class for all errors raised by career_copilot."""


class InvalidInputError(CopilotError, ValueError):
    """Input cannot be processed at all (e.g. empty CV text)."""


class ExternalServiceError(CopilotError):
    """The text-generation API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(ExternalServiceError):
    """The API answered, but the payload was empty, not JSON, or the wrong shape."""


class RetryExhaustedError(ExternalServiceError):
    """Every attempt in the retry budget failed (or the circuit is open)."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException] = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        reason = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(f"{operation} failed after {attempts} attempt(s): {reason}")


class FileProcessingError(CopilotError):
    """An uploaded CV file could not be validated or read."""


def describe_error(error: BaseException) -> str:
    """
    Short human-readable reason for an API failure.

    Maps the common HTTP statuses of the provider onto user-facing messages.
    """
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status == 401:
        return "API authentication failed. Please check API key configuration."
    if status == 429:
        return "API rate limit exceeded."
    return f"{type(error).__name__}: {error}"


@dataclass
class FailureRecord:
    """
    Structured record of a single recoverable failure.

    Used by batch processing to note which items fell back to the local path.
    """

    component: str  # e.g., "job_matcher"
    operation: str  # e.g., "match_single"
    message: str
    item_key: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    exception_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "component": self.component,
            "operation": self.operation,
            "message": self.message,
            "item_key": self.item_key,
            "timestamp": self.timestamp,
            "exception_type": self.exception_type,
        }


class FailureCollector:
    """Collects FailureRecords and summarizes them."""

    def __init__(self, component: str, logger: Optional[logging.Logger] = None):
        self.component = component
        self.records: List[FailureRecord] = []
        self._logger = logger or logging.getLogger(__name__)

    def add(
        self,
        operation: str,
        error: BaseException,
        item_key: Optional[str] = None,
    ) -> FailureRecord:
        """Record a failure and log it at WARNING."""
        record = FailureRecord(
            component=self.component,
            operation=operation,
            message=str(error),
            item_key=item_key,
            exception_type=type(error).__name__,
        )
        self.records.append(record)
        self._logger.warning(
            f"[{self.component}] [{operation}] {item_key or ''} failed, using fallback: {error}"
        )
        return record

    def __len__(self) -> int:
        return len(self.records)

    def messages(self) -> List[str]:
        return [r.message for r in self.records]

    def summary(self) -> Dict[str, object]:
        by_operation: Dict[str, int] = {}
        for record in self.records:
            by_operation[record.operation] = by_operation.get(record.operation, 0) + 1
        return {
            "total": len(self.records),
            "by_operation": by_operation,
            "items": [r.item_key for r in self.records if r.item_key],
        }
