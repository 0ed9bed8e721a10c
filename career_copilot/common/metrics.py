"""
Service metrics for parsing and matching.

One MatchingMetrics instance per service (injected), so tests and separate
service instances never share counters.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class MatchingMetrics:
    """Counters for cache effectiveness, retries, batching and fallbacks."""

    total_requests: int = 0
    cache_hits: int = 0
    batched_requests: int = 0
    retry_count: int = 0
    fallback_count: int = 0
    avg_response_time_ms: float = 0.0
    tokens_saved: int = 0
    personalized_recommendations: int = 0

    def record_request(self, count: int = 1) -> None:
        self.total_requests += count

    def record_cache_hit(self, estimated_tokens: int) -> None:
        self.cache_hits += 1
        self.tokens_saved += estimated_tokens

    def record_retry(self) -> None:
        self.retry_count += 1

    def record_fallback(self) -> None:
        self.fallback_count += 1

    def record_batched(self, count: int) -> None:
        self.batched_requests += count

    def record_personalized(self) -> None:
        self.personalized_recommendations += 1

    def record_response_time(self, elapsed_ms: float, request_count: int = 1) -> None:
        """
        Fold one call's elapsed time into the running average.

        `request_count` is how many requests that call covered; the average
        is weighted by requests, matching how total_requests is counted.
        """
        if self.total_requests <= 0:
            self.avg_response_time_ms = elapsed_ms
            return
        previous = max(0, self.total_requests - request_count)
        self.avg_response_time_ms = (
            self.avg_response_time_ms * previous + elapsed_ms
        ) / self.total_requests

    def _rate(self, numerator: float) -> float:
        if self.total_requests <= 0:
            return 0.0
        return numerator / self.total_requests * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "cache_hits": self.cache_hits,
            "batched_requests": self.batched_requests,
            "retry_count": self.retry_count,
            "fallback_count": self.fallback_count,
            "avg_response_time_ms": round(self.avg_response_time_ms, 2),
            "tokens_saved": self.tokens_saved,
            "personalized_recommendations": self.personalized_recommendations,
            "cache_hit_rate": round(self._rate(self.cache_hits), 2),
            "batch_efficiency": round(self._rate(self.batched_requests), 2),
            "avg_tokens_saved": (
                self.tokens_saved / self.cache_hits if self.cache_hits else 0.0
            ),
            "personalization_rate": round(self._rate(self.personalized_recommendations), 2),
        }

    def reset(self) -> None:
        self.__init__()  # type: ignore[misc]
