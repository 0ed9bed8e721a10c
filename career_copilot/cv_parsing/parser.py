"""
CV Parser

Turns raw CV text into a ParsedCv.

Flow:
    empty text -> Outcome.error (no API call)
    cache hit  -> cached ParsedCv
    otherwise  -> text-generation API (JSON mode, retried) -> regex fallback

Only answers from the API are cached, so a CV parsed by the fallback during
an outage gets a real parse on the next call.
"""

import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from career_copilot.common.config import Config
from career_copilot.common.content_cache import ContentHashCache
from career_copilot.common.error_handling import MalformedResponseError
from career_copilot.common.llm_client import JsonCompletionClient, TextGenerationClient
from career_copilot.common.logger import get_logger
from career_copilot.common.metrics import MatchingMetrics
from career_copilot.common.outcome import Outcome
from career_copilot.common.retrying_caller import (
    NOT_CONFIGURED_REASON,
    RetryingExternalCaller,
    SleepFn,
    build_service_caller,
)
from career_copilot.common.utils import run_async
from career_copilot.cv_parsing.fallback_parser import parse_cv_fallback
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.cv_parsing.prompts import CV_PARSE_SYSTEM_PROMPT, CV_PARSE_USER_TEMPLATE


class CvParser:
    """CV text -> ParsedCv with caching, retries and a regex fallback."""

    def __init__(
        self,
        client: Optional[JsonCompletionClient] = None,
        caller: Optional[RetryingExternalCaller] = None,
        cache: Optional[ContentHashCache[ParsedCv]] = None,
        metrics: Optional[MatchingMetrics] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.metrics = metrics or MatchingMetrics()
        self.client: JsonCompletionClient = client or TextGenerationClient(
            temperature=Config.CV_PARSE_TEMPERATURE,
            max_tokens=Config.CV_PARSE_MAX_TOKENS,
        )
        self.caller = caller or build_service_caller(
            "cv_parser", "openai-parse", sleep=sleep, metrics=self.metrics
        )
        self.cache: ContentHashCache[ParsedCv] = cache or ContentHashCache(
            ttl_seconds=Config.CV_CACHE_TTL_SECONDS,
            max_entries=Config.CV_CACHE_MAX_ENTRIES,
            evict_count=Config.CV_CACHE_EVICT_COUNT,
            prefix_length=Config.CV_CACHE_PREFIX_CHARS,
            name="cv_cache",
        )
        self._logger = get_logger(__name__, component="cv_parser")

    async def _parse_with_llm(self, cv_text: str) -> ParsedCv:
        data = await self.client.complete_json(
            CV_PARSE_SYSTEM_PROMPT,
            CV_PARSE_USER_TEMPLATE.format(cv_text=cv_text),
        )
        return self._validate(data)

    @staticmethod
    def _validate(data: Dict[str, Any]) -> ParsedCv:
        """
        Raises:
            MalformedResponseError: Payload does not describe a CV
        """
        if not any(key in data for key in ParsedCv.model_fields):
            raise MalformedResponseError(
                f"CV payload has none of the expected fields: {str(data)[:200]}"
            )
        try:
            return ParsedCv.model_validate(data)
        except ValidationError as e:
            error_msgs = [
                f"{' -> '.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise MalformedResponseError(
                "CV payload failed validation: " + "; ".join(error_msgs)
            ) from e

    async def parse_async(self, cv_text: str) -> Outcome[ParsedCv]:
        """
        Parse CV text.

        Returns:
            Outcome.ok (API answer or cache hit), Outcome.degraded (regex
            fallback, with the reason), or Outcome.error for empty text.
        """
        if not cv_text or not cv_text.strip():
            self._logger.warning("Rejected empty CV text")
            return Outcome.error("No CV content provided for parsing")

        started = time.monotonic()
        self.metrics.record_request()

        cached = self.cache.get(cv_text)
        if cached is not None:
            self.metrics.record_cache_hit(Config.CV_PARSE_MAX_TOKENS)
            self._logger.debug("Cache hit for CV text")
            self.metrics.record_response_time((time.monotonic() - started) * 1000)
            return Outcome.ok(cached, attempts=0, cached=True)

        outcome = await self.caller.call(
            lambda: self._parse_with_llm(cv_text),
            fallback=lambda: parse_cv_fallback(cv_text),
            operation_name="parse_cv",
            unavailable_reason=None if self.client.is_configured() else NOT_CONFIGURED_REASON,
        )

        if outcome.is_ok:
            self.cache.put(cv_text, outcome.value)
            self._logger.info(
                f"Parsed CV: {len(outcome.value.skills)} skills, attempts={outcome.attempts}"
            )

        self.metrics.record_response_time((time.monotonic() - started) * 1000)
        return outcome

    def parse(self, cv_text: str) -> Outcome[ParsedCv]:
        """Synchronous wrapper for parse_async()."""
        return run_async(self.parse_async(cv_text))

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
