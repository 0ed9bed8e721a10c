"""
Job Matcher

Scores a parsed CV against job postings.

Single match:
    cache -> text-generation API (with retries) -> heuristic scorer

Many jobs (match_jobs):
    cached jobs served from the cache, the rest scored in batches of
    MATCH_BATCH_SIZE with one prompt per batch; a failed batch degrades to
    one call per job, and a failed job to the heuristic scorer. Results get
    the personalization boost, are sorted best first and matches scoring
    20 or less are dropped.

Usage:
    matcher = JobMatcher()
    outcome = matcher.match(parsed_cv, job)
    if outcome.is_degraded:
        logger.info(f"Heuristic score used: {outcome.reason}")
    print(outcome.unwrap().match_score)
"""

import time
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from career_copilot.common.config import Config
from career_copilot.common.content_cache import ContentHashCache
from career_copilot.common.error_handling import InvalidInputError, MalformedResponseError
from career_copilot.common.json_utils import canonical_json
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
from career_copilot.common.utils import run_async, truncate
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.job_matching.batch import BatchOrchestrator
from career_copilot.job_matching.filters import (
    SearchFilters,
    apply_search_filters,
    prefilter_jobs,
)
from career_copilot.job_matching.heuristic_scorer import HeuristicFallbackScorer
from career_copilot.job_matching.models import Job, MatchPreferences, MatchResult
from career_copilot.job_matching.personalization import UserBehavior, UserBehaviorTracker
from career_copilot.job_matching.prompts import (
    BATCH_JOB_TEMPLATE,
    BATCH_MATCH_SYSTEM_PROMPT,
    BATCH_MATCH_USER_TEMPLATE,
    MATCH_SYSTEM_PROMPT,
    MATCH_USER_TEMPLATE,
)
from career_copilot.job_matching.skills import SkillAliasMap

PROMPT_MAX_SKILLS = 15
PROMPT_MAX_EXPERIENCE_CHARS = 300
PROMPT_MAX_REQUIREMENTS = 10

MIN_REPORTED_SCORE = 20
TOP_MATCHES_DEFAULT_LIMIT = 20
TOP_MATCHES_MAX_JOBS = 50
SEARCH_MAX_JOBS = 30

CandidateInput = Union[ParsedCv, Dict[str, Any]]
JobInput = Union[Job, Dict[str, Any]]
PreferencesInput = Optional[Union[MatchPreferences, Dict[str, Any]]]


class JobMatcher:
    """
    Matches candidates to jobs with caching, batching, fallback and
    personalization. Each instance owns its cache, metrics and tracker.
    """

    def __init__(
        self,
        client: Optional[JsonCompletionClient] = None,
        caller: Optional[RetryingExternalCaller] = None,
        cache: Optional[ContentHashCache[MatchResult]] = None,
        scorer: Optional[HeuristicFallbackScorer] = None,
        alias_map: Optional[SkillAliasMap] = None,
        tracker: Optional[UserBehaviorTracker] = None,
        metrics: Optional[MatchingMetrics] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.metrics = metrics or MatchingMetrics()
        self.client: JsonCompletionClient = client or TextGenerationClient(
            temperature=Config.MATCH_TEMPERATURE,
            max_tokens=Config.MATCH_MAX_TOKENS,
        )
        self.caller = caller or build_service_caller(
            "job_matcher", "openai-match", sleep=sleep, metrics=self.metrics
        )
        self.cache: ContentHashCache[MatchResult] = cache or ContentHashCache(
            ttl_seconds=Config.MATCH_CACHE_TTL_SECONDS,
            max_entries=Config.CACHE_MAX_ENTRIES,
            evict_count=Config.CACHE_EVICT_COUNT,
            name="match_cache",
        )
        self.scorer = scorer or HeuristicFallbackScorer(alias_map)
        self.alias_map = alias_map or self.scorer.alias_map
        self.tracker = tracker or UserBehaviorTracker()
        self.batcher = BatchOrchestrator(
            self.caller,
            batch_size=batch_size,
            batch_delay=batch_delay,
            sleep=sleep,
            component="job_matcher",
        )
        self._logger = get_logger(__name__, component="job_matcher")

    # ===== Input coercion =====

    @staticmethod
    def _coerce(
        candidate: CandidateInput,
        jobs: List[JobInput],
        preferences: PreferencesInput,
    ) -> Tuple[ParsedCv, List[Job], Optional[MatchPreferences]]:
        """
        Raises:
            InvalidInputError: Any input fails validation
        """
        try:
            cv = candidate if isinstance(candidate, ParsedCv) else ParsedCv.model_validate(candidate)
            job_models = [j if isinstance(j, Job) else Job.model_validate(j) for j in jobs]
            prefs = None
            if preferences is not None:
                prefs = (
                    preferences
                    if isinstance(preferences, MatchPreferences)
                    else MatchPreferences.model_validate(preferences)
                )
        except ValidationError as e:
            error_msgs = [
                f"{' -> '.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise InvalidInputError("Invalid match input: " + "; ".join(error_msgs)) from e
        return cv, job_models, prefs

    def _cache_content(
        self,
        candidate: ParsedCv,
        job: Job,
        preferences: Optional[MatchPreferences],
    ) -> str:
        # user_id only affects the personalization boost, which is never cached
        prefs = preferences.model_dump(exclude={"user_id"}) if preferences else None
        return canonical_json(
            {"candidate": candidate.model_dump(), "job": job.model_dump(), "preferences": prefs}
        )

    def _unavailable_reason(self) -> Optional[str]:
        return None if self.client.is_configured() else NOT_CONFIGURED_REASON

    # ===== Prompt building =====

    @staticmethod
    def _candidate_fields(
        candidate: ParsedCv, preferences: Optional[MatchPreferences]
    ) -> Dict[str, str]:
        prefs = preferences or MatchPreferences()
        return {
            "skills": ", ".join(candidate.skills[:PROMPT_MAX_SKILLS]) or "Not specified",
            "experience": truncate(candidate.experience, PROMPT_MAX_EXPERIENCE_CHARS),
            "candidate_location": candidate.location or "Not specified",
            "preferred_location": prefs.preferred_location or "Any",
            "salary_expectation": prefs.salary_expectation or "Not specified",
            "preferred_job_types": ", ".join(prefs.preferred_job_types) or "Any",
        }

    @staticmethod
    def _job_fields(job: Job) -> Dict[str, str]:
        return {
            "job_id": job.id,
            "title": job.title,
            "company": job.company,
            "job_location": job.location or "Not specified",
            "job_type": job.type,
            "salary": job.salary or "Not specified",
            "requirements": ", ".join(job.requirements[:PROMPT_MAX_REQUIREMENTS]) or "Not specified",
        }

    async def _match_with_llm(
        self,
        candidate: ParsedCv,
        job: Job,
        preferences: Optional[MatchPreferences],
    ) -> MatchResult:
        prompt = MATCH_USER_TEMPLATE.format(
            **self._job_fields(job),
            **self._candidate_fields(candidate, preferences),
        )
        data = await self.client.complete_json(MATCH_SYSTEM_PROMPT, prompt)
        return MatchResult.from_llm(job, data)

    async def _match_batch_with_llm(
        self,
        candidate: ParsedCv,
        jobs: List[Job],
        preferences: Optional[MatchPreferences],
    ) -> List[MatchResult]:
        """
        Score several jobs with one prompt.

        Raises:
            MalformedResponseError: No results list, or one of the wrong length
        """
        prompt = BATCH_MATCH_USER_TEMPLATE.format(
            **self._candidate_fields(candidate, preferences),
            job_count=len(jobs),
            jobs="\n".join(BATCH_JOB_TEMPLATE.format(**self._job_fields(job)) for job in jobs),
        )
        data = await self.client.complete_json(BATCH_MATCH_SYSTEM_PROMPT, prompt)

        entries = data.get("results")
        if not isinstance(entries, list) or len(entries) != len(jobs):
            got = len(entries) if isinstance(entries, list) else "no"
            raise MalformedResponseError(f"Expected {len(jobs)} batch results, got {got}")

        by_id = {
            str(entry.get("job_id")): entry
            for entry in entries
            if isinstance(entry, dict) and entry.get("job_id") is not None
        }
        if all(job.id in by_id for job in jobs):
            entries = [by_id[job.id] for job in jobs]

        return [MatchResult.from_llm(job, entry) for job, entry in zip(jobs, entries)]

    # ===== Single match =====

    async def match_async(
        self,
        candidate: CandidateInput,
        job: JobInput,
        preferences: PreferencesInput = None,
    ) -> Outcome[MatchResult]:
        """
        Score one candidate against one job.

        Returns:
            Outcome.ok (API answer or cache hit), Outcome.degraded (heuristic
            score, with the reason), or Outcome.error for invalid input.
        """
        try:
            cv, (job_model,), prefs = self._coerce(candidate, [job], preferences)
        except InvalidInputError as e:
            return Outcome.error(str(e))

        started = time.monotonic()
        self.metrics.record_request()

        content = self._cache_content(cv, job_model, prefs)
        cached = self.cache.get(content)
        if cached is not None:
            self.metrics.record_cache_hit(Config.MATCH_MAX_TOKENS)
            self._logger.debug(f"Cache hit for job {job_model.id}")
            self.metrics.record_response_time((time.monotonic() - started) * 1000)
            return Outcome.ok(cached, attempts=0, cached=True)

        outcome = await self.caller.call(
            lambda: self._match_with_llm(cv, job_model, prefs),
            fallback=lambda: self.scorer.score(cv, job_model, prefs),
            operation_name=f"match_job[{job_model.id}]",
            unavailable_reason=self._unavailable_reason(),
        )
        if outcome.is_ok:
            self.cache.put(content, outcome.value)

        self.metrics.record_response_time((time.monotonic() - started) * 1000)
        return outcome

    def match(
        self,
        candidate: CandidateInput,
        job: JobInput,
        preferences: PreferencesInput = None,
    ) -> Outcome[MatchResult]:
        """Synchronous wrapper for match_async()."""
        return run_async(self.match_async(candidate, job, preferences))

    # ===== Many jobs =====

    async def match_jobs_async(
        self,
        candidate: CandidateInput,
        jobs: List[JobInput],
        preferences: PreferencesInput = None,
    ) -> Outcome[List[MatchResult]]:
        """
        Score many jobs, best first, dropping matches scoring 20 or less.

        Returns:
            Outcome.ok when every score came from the API or the cache,
            Outcome.degraded when at least one came from the heuristic scorer.
        """
        try:
            cv, job_models, prefs = self._coerce(candidate, jobs, preferences)
        except InvalidInputError as e:
            return Outcome.error(str(e))

        logger = self._logger.with_request(uuid.uuid4().hex)
        started = time.monotonic()
        self.metrics.record_request(len(job_models))

        results: List[Optional[MatchResult]] = [None] * len(job_models)
        uncached: List[Tuple[int, Job]] = []
        for index, job in enumerate(job_models):
            cached = self.cache.get(self._cache_content(cv, job, prefs))
            if cached is not None:
                self.metrics.record_cache_hit(Config.MATCH_MAX_TOKENS)
                results[index] = cached
            else:
                uncached.append((index, job))

        logger.info(
            f"Matching {len(job_models)} jobs: {len(job_models) - len(uncached)} cached, "
            f"{len(uncached)} to score"
        )

        degraded_reasons: List[str] = []
        if uncached:
            pending = [job for _, job in uncached]
            scored, reasons = await self._score_uncached(cv, pending, prefs)
            degraded_reasons.extend(reasons)
            for (index, _), result in zip(uncached, scored):
                results[index] = result

        matches = [r for r in results if r is not None]
        if prefs and prefs.user_id:
            matches = [self._personalize(m, prefs.user_id) for m in matches]

        matches.sort(key=lambda m: m.match_score, reverse=True)
        matches = [m for m in matches if m.match_score > MIN_REPORTED_SCORE]

        self.metrics.record_response_time(
            (time.monotonic() - started) * 1000, request_count=len(job_models)
        )

        if degraded_reasons:
            reason = (
                f"{len(degraded_reasons)} of {len(job_models)} jobs scored locally: "
                f"{degraded_reasons[0]}"
            )
            logger.warning(reason)
            return Outcome.degraded(matches, reason=reason)
        return Outcome.ok(matches, attempts=0)

    async def _score_uncached(
        self,
        candidate: ParsedCv,
        jobs: List[Job],
        preferences: Optional[MatchPreferences],
    ) -> Tuple[List[MatchResult], List[str]]:
        """Score jobs missing from the cache; returns results and fallback reasons."""
        unavailable = self._unavailable_reason()
        if unavailable:
            self._logger.info(f"{unavailable}, using heuristic matching")
            for _ in jobs:
                self.metrics.record_fallback()
            return (
                [self.scorer.score(candidate, job, preferences) for job in jobs],
                [unavailable] * len(jobs),
            )

        self.metrics.record_batched(len(jobs))
        report = await self.batcher.run(
            jobs,
            process_batch=lambda batch: self._match_batch_with_llm(candidate, batch, preferences),
            process_item=lambda job: self._match_with_llm(candidate, job, preferences),
            fallback_item=lambda job: self.scorer.score(candidate, job, preferences),
            item_key=lambda job: job.id,
        )

        reasons: List[str] = []
        for job, outcome in zip(jobs, report.outcomes):
            if outcome.is_ok:
                self.cache.put(self._cache_content(candidate, job, preferences), outcome.value)
            else:
                reasons.append(outcome.reason or "fallback")
        return report.values, reasons

    def match_jobs(
        self,
        candidate: CandidateInput,
        jobs: List[JobInput],
        preferences: PreferencesInput = None,
    ) -> Outcome[List[MatchResult]]:
        """Synchronous wrapper for match_jobs_async()."""
        return run_async(self.match_jobs_async(candidate, jobs, preferences))

    async def top_matches_async(
        self,
        candidate: CandidateInput,
        jobs: List[JobInput],
        limit: int = TOP_MATCHES_DEFAULT_LIMIT,
        preferences: PreferencesInput = None,
    ) -> Outcome[List[MatchResult]]:
        """Pre-filter, score at most 50 jobs, return the best `limit`."""
        try:
            cv, job_models, prefs = self._coerce(candidate, jobs, preferences)
        except InvalidInputError as e:
            return Outcome.error(str(e))

        candidates = prefilter_jobs(job_models, cv, prefs, self.alias_map)[:TOP_MATCHES_MAX_JOBS]
        self._logger.info(
            f"Pre-filter kept {len(candidates)} of {len(job_models)} jobs for top matches"
        )
        outcome = await self.match_jobs_async(cv, candidates, prefs)
        return outcome.map(lambda matches: matches[:limit])

    def top_matches(
        self,
        candidate: CandidateInput,
        jobs: List[JobInput],
        limit: int = TOP_MATCHES_DEFAULT_LIMIT,
        preferences: PreferencesInput = None,
    ) -> Outcome[List[MatchResult]]:
        return run_async(self.top_matches_async(candidate, jobs, limit, preferences))

    async def search_jobs_async(
        self,
        candidate: CandidateInput,
        jobs: List[JobInput],
        filters: Union[SearchFilters, Dict[str, Any]],
        preferences: PreferencesInput = None,
    ) -> Outcome[List[MatchResult]]:
        """Apply search filters, pre-filter, score at most 30 jobs."""
        try:
            cv, job_models, prefs = self._coerce(candidate, jobs, preferences)
            search = filters if isinstance(filters, SearchFilters) else SearchFilters.model_validate(filters)
        except InvalidInputError as e:
            return Outcome.error(str(e))
        except ValidationError as e:
            return Outcome.error(f"Invalid search filters: {e}")

        filtered = apply_search_filters(job_models, search, self.alias_map)
        candidates = prefilter_jobs(filtered, cv, prefs, self.alias_map)[:SEARCH_MAX_JOBS]
        self._logger.info(
            f"Search kept {len(filtered)} of {len(job_models)} jobs, "
            f"{len(candidates)} after pre-filter"
        )
        return await self.match_jobs_async(cv, candidates, prefs)

    def search_jobs(
        self,
        candidate: CandidateInput,
        jobs: List[JobInput],
        filters: Union[SearchFilters, Dict[str, Any]],
        preferences: PreferencesInput = None,
    ) -> Outcome[List[MatchResult]]:
        return run_async(self.search_jobs_async(candidate, jobs, filters, preferences))

    # ===== Personalization =====

    def _personalize(self, match: MatchResult, user_id: str) -> MatchResult:
        boost = self.tracker.boost(user_id, match.job)
        if boost == 0:
            return match
        self.metrics.record_personalized()
        return match.with_score(match.match_score + boost)

    def track_behavior(
        self,
        user_id: str,
        action: str,
        job_id: str,
        view_time: Optional[float] = None,
        job: Optional[Job] = None,
    ) -> UserBehavior:
        return self.tracker.track(user_id, action, job_id, view_time=view_time, job=job)

    # ===== Diagnostics =====

    def get_metrics(self) -> Dict[str, Any]:
        data = self.metrics.to_dict()
        data["cache_size"] = len(self.cache)
        if self.caller.breaker is not None:
            data["circuit"] = self.caller.breaker.get_stats().to_dict()
        return data

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
