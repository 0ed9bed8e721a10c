"""
Unit tests for career_copilot/job_matching/matcher.py

Tests:
- match(): API answer, cache hit, retry exhaustion, unconfigured client,
  invalid input, malformed answers
- match_jobs(): batching, id mapping, ordering, score cutoff, caching,
  per-job degradation, personalization
- top_matches() / search_jobs(): pre-filtering and limits
- get_metrics()
- The default circuit breaker during batch degradation and repeated failures
"""

import re
from unittest.mock import patch

import pytest

from career_copilot.common.config import Config
from career_copilot.common.error_handling import ExternalServiceError, MalformedResponseError
from career_copilot.common.retrying_caller import NOT_CONFIGURED_REASON, RetryingExternalCaller
from career_copilot.job_matching.matcher import JobMatcher
from career_copilot.job_matching.models import MatchPreferences
from career_copilot.job_matching.prompts import BATCH_MATCH_SYSTEM_PROMPT

JOB_ID_RE = re.compile(r"\[job_id: ([^\]]+)\]")


def match_api(scores=None, default=60, single_score=82, batch_error=None):
    """Handler answering single and batch prompts like the real API would."""
    scores = scores or {}

    def handler(system_prompt, user_prompt):
        if system_prompt == BATCH_MATCH_SYSTEM_PROMPT:
            if batch_error is not None:
                raise batch_error
            job_ids = JOB_ID_RE.findall(user_prompt)
            # reversed on purpose: results must be mapped back by job_id
            return {
                "results": [
                    {
                        "job_id": job_id,
                        "match_score": scores.get(job_id, default),
                        "explanation": f"Scored {job_id}",
                    }
                    for job_id in reversed(job_ids)
                ]
            }
        return {"match_score": single_score, "explanation": "Single job analysis"}

    return handler


@pytest.fixture
def make_matcher(no_sleep, alias_map):
    def factory(client, **kwargs):
        kwargs.setdefault("batch_delay", 0)
        return JobMatcher(client=client, alias_map=alias_map, sleep=no_sleep, **kwargs)

    return factory


def ids(matches):
    return [m.job.id for m in matches]


class TestMatch:
    """Tests for JobMatcher.match()."""

    def test_api_answer(self, make_matcher, scripted_client, sample_cv, sample_job):
        """Should return OK with the API's score."""
        client = scripted_client([
            {
                "matchScore": 82,
                "explanation": "Good fit",
                "skillsMatch": {"matched": ["react"], "missing": ["node.js"], "score": 50},
                "location_match": {"suitable": "true", "score": 95},
            }
        ])
        matcher = make_matcher(client)

        outcome = matcher.match(sample_cv, sample_job)

        assert outcome.is_ok
        result = outcome.value
        assert result.match_score == 82
        assert result.job.id == "job-1"
        assert result.skills_match.missing == ["node.js"]
        assert result.location_match.suitable is True
        assert result.location_match.explanation == "Location compatibility analyzed"
        assert outcome.attempts == 1

    def test_prompt_contains_job_and_candidate(self, make_matcher, scripted_client, sample_cv, sample_job):
        """Should include title, requirements and candidate skills in the prompt."""
        client = scripted_client([{"match_score": 70}])
        matcher = make_matcher(client)

        matcher.match(sample_cv, sample_job, {"preferred_location": "London"})

        _, prompt = client.calls[0]
        assert "Senior Frontend Engineer at StreamCo" in prompt
        assert "react, node.js" in prompt
        assert "React, TypeScript, Python, Docker" in prompt
        assert "- Location: London" in prompt

    def test_cache_hit(self, make_matcher, scripted_client, sample_cv, sample_job):
        """Should answer the second identical request from the cache."""
        client = scripted_client([{"match_score": 70}])
        matcher = make_matcher(client)

        first = matcher.match(sample_cv, sample_job)
        second = matcher.match(sample_cv, sample_job)

        assert client.call_count == 1
        assert second.cached
        assert second.attempts == 0
        assert second.value == first.value
        assert matcher.metrics.cache_hits == 1

    def test_cache_hit_counts_response_time(self, make_matcher, scripted_client, sample_cv, sample_job):
        """Should fold cache hits into the average response time."""
        matcher = make_matcher(scripted_client([{"match_score": 70}]))

        with patch.object(
            matcher.metrics, "record_response_time", wraps=matcher.metrics.record_response_time
        ) as recorded:
            matcher.match(sample_cv, sample_job)
            matcher.match(sample_cv, sample_job)

        assert recorded.call_count == 2

    def test_retry_exhaustion_falls_back(self, make_matcher, failing_client, sample_cv, sample_job):
        """Should retry the configured number of times, then use the heuristic score."""
        matcher = make_matcher(failing_client)

        outcome = matcher.match(sample_cv, sample_job)

        assert outcome.is_degraded
        assert failing_client.call_count == Config.LLM_MAX_RETRIES + 1
        assert outcome.value == matcher.scorer.score(sample_cv, sample_job)
        assert "API unavailable" in outcome.reason
        assert len(matcher.cache) == 0

    def test_malformed_answer_is_retried(self, make_matcher, scripted_client, sample_cv, sample_job):
        """Should treat an answer without match_score as a failed attempt."""
        client = scripted_client([{"verdict": "great"}, {"match_score": 64}])
        matcher = make_matcher(client)

        outcome = matcher.match(sample_cv, sample_job)

        assert outcome.is_ok
        assert outcome.value.match_score == 64
        assert outcome.attempts == 2

    def test_unconfigured_client(self, make_matcher, unconfigured_client, sample_cv, sample_job):
        """Should use the heuristic score without calling the API."""
        matcher = make_matcher(unconfigured_client)

        outcome = matcher.match(sample_cv, sample_job)

        assert outcome.is_degraded
        assert outcome.reason == NOT_CONFIGURED_REASON
        assert unconfigured_client.call_count == 0
        assert matcher.metrics.fallback_count == 1

    def test_dict_inputs(self, make_matcher, scripted_client):
        """Should accept plain dicts for candidate, job and preferences."""
        matcher = make_matcher(scripted_client([{"match_score": "71.4"}]))

        outcome = matcher.match(
            {"skills": ["python"], "experience": "3 years"},
            {"id": 7, "title": "Python Dev", "requirements": ["python"]},
            {"preferred_job_types": ["full-time"]},
        )

        assert outcome.is_ok
        assert outcome.value.match_score == 71
        assert outcome.value.job.id == "7"

    def test_invalid_job(self, make_matcher, scripted_client, sample_cv):
        """Should return ERROR for a job without a title."""
        client = scripted_client([{"match_score": 70}])
        matcher = make_matcher(client)

        outcome = matcher.match(sample_cv, {"id": "x"})

        assert outcome.is_error
        assert "title" in outcome.reason
        assert client.call_count == 0


class TestMatchJobs:
    """Tests for JobMatcher.match_jobs()."""

    def test_batches_and_orders(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should score in batches, map by job_id, sort and drop low scores."""
        scores = {f"job-{i}": 30 + i * 5 for i in range(10)}
        scores["job-1"] = 10
        client = scripted_client(handler=match_api(scores))
        matcher = make_matcher(client, batch_size=4)

        outcome = matcher.match_jobs(sample_cv, sample_jobs)

        assert outcome.is_ok
        assert client.call_count == 3
        assert ids(outcome.value) == [f"job-{i}" for i in range(9, 1, -1)] + ["job-0"]
        assert outcome.value[0].match_score == 75
        assert outcome.value[0].explanation == "Scored job-9"
        assert matcher.metrics.batched_requests == 10
        assert matcher.metrics.total_requests == 10

    def test_second_run_served_from_cache(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should not call the API for jobs scored before."""
        client = scripted_client(handler=match_api())
        matcher = make_matcher(client, batch_size=4)

        matcher.match_jobs(sample_cv, sample_jobs)
        calls = client.call_count
        outcome = matcher.match_jobs(sample_cv, sample_jobs)

        assert client.call_count == calls
        assert outcome.is_ok
        assert len(outcome.value) == 10
        assert matcher.metrics.cache_hits == 10

    def test_unconfigured_scores_locally(self, make_matcher, unconfigured_client, sample_cv, sample_jobs):
        """Should degrade every job to the heuristic score."""
        matcher = make_matcher(unconfigured_client)

        outcome = matcher.match_jobs(sample_cv, sample_jobs)

        assert outcome.is_degraded
        assert outcome.reason.startswith("10 of 10 jobs scored locally")
        assert unconfigured_client.call_count == 0
        scores = [m.match_score for m in outcome.value]
        assert scores == sorted(scores, reverse=True)
        assert all(score > 20 for score in scores)

    def test_failed_batch_degrades_per_job(self, make_matcher, scripted_client, no_sleep, sample_cv, sample_jobs):
        """Should retry the batch, then call the API once per job."""
        client = scripted_client(
            handler=match_api(single_score=77, batch_error=ExternalServiceError("batch down"))
        )
        caller = RetryingExternalCaller(
            name="test", max_retries=1, base_delay=0, jitter=0, sleep=no_sleep
        )
        matcher = make_matcher(client, caller=caller, batch_size=8)

        outcome = matcher.match_jobs(sample_cv, sample_jobs[:3])

        assert client.call_count == 2 + 3
        assert outcome.is_ok
        assert [m.match_score for m in outcome.value] == [77, 77, 77]

    def test_failed_job_uses_heuristic(self, make_matcher, scripted_client, no_sleep, sample_cv, sample_jobs):
        """Should report DEGRADED when single-job calls fail too."""
        client = scripted_client([ExternalServiceError("down")])
        caller = RetryingExternalCaller(
            name="test", max_retries=0, base_delay=0, jitter=0, sleep=no_sleep
        )
        matcher = make_matcher(client, caller=caller)

        outcome = matcher.match_jobs(sample_cv, sample_jobs[:2])

        assert outcome.is_degraded
        assert outcome.reason.startswith("2 of 2 jobs scored locally")
        expected = {job.id: matcher.scorer.score(sample_cv, job).match_score for job in sample_jobs[:2]}
        assert {m.job.id: m.match_score for m in outcome.value} == expected
        assert len(matcher.cache) == 0

    def test_personalization_boost(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should boost jobs matching the user's tracked preferences."""
        client = scripted_client(handler=match_api(default=50))
        matcher = make_matcher(client, batch_size=10)
        matcher.track_behavior("u1", "apply", sample_jobs[0].id, job=sample_jobs[0])

        outcome = matcher.match_jobs(sample_cv, sample_jobs, MatchPreferences(user_id="u1"))

        by_id = {m.job.id: m.match_score for m in outcome.value}
        assert by_id["job-0"] == 70  # company + type + applied, capped at +20
        assert by_id["job-3"] == 65  # type + applied
        assert by_id["job-2"] == 55  # applied only
        assert ids(outcome.value)[0] == "job-0"
        assert matcher.metrics.personalized_recommendations == 10

    def test_user_id_not_part_of_cache_key(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should reuse cached scores across users."""
        client = scripted_client(handler=match_api())
        matcher = make_matcher(client)

        matcher.match_jobs(sample_cv, sample_jobs[:3], {"user_id": "u1"})
        calls = client.call_count
        matcher.match_jobs(sample_cv, sample_jobs[:3], {"user_id": "u2"})

        assert client.call_count == calls

    def test_empty_job_list(self, make_matcher, scripted_client, sample_cv):
        """Should return an empty OK result without calling the API."""
        client = scripted_client(handler=match_api())
        matcher = make_matcher(client)

        outcome = matcher.match_jobs(sample_cv, [])

        assert outcome.is_ok
        assert outcome.value == []
        assert client.call_count == 0


class TestTopMatchesAndSearch:
    """Tests for top_matches() / search_jobs()."""

    def test_top_matches_prefilters_and_limits(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should only score pre-filtered jobs and return the best `limit`."""
        client = scripted_client(handler=match_api())
        matcher = make_matcher(client, batch_size=20)

        outcome = matcher.top_matches(sample_cv, sample_jobs, limit=3)

        assert len(outcome.value) == 3
        _, prompt = client.calls[0]
        assert "[job_id: job-1]" not in prompt
        assert "[job_id: job-4]" not in prompt
        assert len(JOB_ID_RE.findall(prompt)) == 8

    def test_search_jobs_filters_first(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should score only jobs passing the search filters."""
        client = scripted_client(handler=match_api())
        matcher = make_matcher(client, batch_size=20)

        outcome = matcher.search_jobs(sample_cv, sample_jobs, {"location": "London"})

        assert outcome.is_ok
        assert sorted(ids(outcome.value)) == ["job-3", "job-5", "job-9"]

    def test_search_jobs_invalid_filters(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should return ERROR for filters that fail validation."""
        matcher = make_matcher(scripted_client(handler=match_api()))

        outcome = matcher.search_jobs(sample_cv, sample_jobs, {"min_salary": "lots"})

        assert outcome.is_error
        assert "Invalid search filters" in outcome.reason


class TestDiagnostics:
    """Tests for get_metrics() / cache helpers."""

    def test_get_metrics(self, make_matcher, scripted_client, sample_cv, sample_job):
        """Should include counters, cache size and circuit state."""
        matcher = make_matcher(scripted_client([{"match_score": 70}]))
        matcher.match(sample_cv, sample_job)

        data = matcher.get_metrics()

        assert data["total_requests"] == 1
        assert data["cache_size"] == 1
        assert data["circuit"]["state"] == "closed"

    def test_clear_cache(self, make_matcher, scripted_client, sample_cv, sample_job):
        """Should empty the match cache."""
        matcher = make_matcher(scripted_client([{"match_score": 70}]))
        matcher.match(sample_cv, sample_job)

        matcher.clear_cache()

        assert matcher.cache_stats()["size"] == 0


class TestDefaultCircuitBreaker:
    """Tests for the breaker JobMatcher builds when no caller is injected."""

    @staticmethod
    def single_job_api(batch_answer, first_single_error, later_single):
        """Batch prompts get `batch_answer`; the first single call fails, later ones follow `later_single`."""
        singles = []

        def handler(system_prompt, user_prompt):
            if system_prompt == BATCH_MATCH_SYSTEM_PROMPT:
                if isinstance(batch_answer, Exception):
                    raise batch_answer
                return batch_answer
            singles.append(user_prompt)
            if len(singles) == 1:
                raise first_single_error
            if isinstance(later_single, Exception):
                raise later_single
            return later_single

        return handler, singles

    def test_malformed_batch_still_calls_every_job(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should call the API once per job after a malformed batch, even when one job fails."""
        handler, singles = self.single_job_api(
            batch_answer={"results": "not a list"},
            first_single_error=MalformedResponseError("empty answer"),
            later_single={"match_score": 77, "explanation": "Single job analysis"},
        )
        client = scripted_client(handler=handler)
        matcher = make_matcher(client, batch_size=8)

        outcome = matcher.match_jobs(sample_cv, sample_jobs[:8])

        assert len(singles) == 8
        assert client.call_count == Config.LLM_MAX_RETRIES + 1 + 8
        assert outcome.is_degraded
        assert outcome.reason.startswith("1 of 8 jobs scored locally")
        assert [m.match_score for m in outcome.value].count(77) == 7
        assert matcher.caller.breaker.state.value == "closed"

    def test_outage_still_tries_every_job(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should try each job once when the provider is down, then fall back locally."""
        outage = ExternalServiceError("API unavailable", status_code=503)
        handler, singles = self.single_job_api(
            batch_answer=outage, first_single_error=outage, later_single=outage
        )
        matcher = make_matcher(scripted_client(handler=handler), batch_size=8)

        outcome = matcher.match_jobs(sample_cv, sample_jobs[:8])

        assert len(singles) == 8
        assert outcome.reason.startswith("8 of 8 jobs scored locally")

    def test_malformed_answers_do_not_open_circuit(self, make_matcher, scripted_client, sample_cv, sample_jobs):
        """Should keep calling the API after repeated malformed answers."""
        client = scripted_client([MalformedResponseError("not JSON")])
        matcher = make_matcher(client)

        for job in sample_jobs[:3]:
            outcome = matcher.match(sample_cv, job)
            assert outcome.is_degraded
            assert not outcome.reason.startswith("circuit open")

        assert client.call_count == 3 * (Config.LLM_MAX_RETRIES + 1)
        assert matcher.caller.breaker.state.value == "closed"

    def test_outages_open_circuit_after_threshold(self, make_matcher, failing_client, sample_cv, sample_jobs):
        """Should short-circuit match() once consecutive outages pass the threshold."""
        matcher = make_matcher(failing_client)
        threshold = matcher.caller.breaker.failure_threshold

        assert threshold > matcher.caller.max_attempts

        matcher.match(sample_cv, sample_jobs[0])
        matcher.match(sample_cv, sample_jobs[1])
        calls_before = failing_client.call_count
        outcome = matcher.match(sample_cv, sample_jobs[2])

        assert calls_before == threshold
        assert outcome.is_degraded
        assert outcome.reason.startswith("circuit open")
        assert failing_client.call_count == calls_before
