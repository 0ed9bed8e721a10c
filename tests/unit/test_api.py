"""
Unit tests for career_copilot/api.py

Tests:
- CareerCopilot wiring (shared metrics)
- Module-level functions on the lazily created default service
- No API key: every operation degrades to its local fallback
- Application preparation through the facade and the module function
"""

from career_copilot import api
from career_copilot.api import CareerCopilot
from career_copilot.common.metrics import MatchingMetrics
from career_copilot.common.retrying_caller import NOT_CONFIGURED_REASON

CV_TEXT = "Ada Lovelace\nada@example.com\nPython and React developer, 6 years of experience."


class TestCareerCopilot:
    """Tests for the CareerCopilot facade."""

    def test_shared_metrics(self, unconfigured_client, alias_map, sample_job):
        """Should count parse and match requests in one metrics sink."""
        metrics = MatchingMetrics()
        service = CareerCopilot(client=unconfigured_client, alias_map=alias_map, metrics=metrics)

        parsed = service.parse(CV_TEXT).unwrap()
        service.match(parsed, sample_job)

        assert metrics.total_requests == 2
        assert metrics.fallback_count == 2
        assert service.get_metrics()["total_requests"] == 2

    def test_end_to_end_without_key(self, unconfigured_client, alias_map, sample_jobs):
        """Should parse, match and score with local fallbacks only."""
        service = CareerCopilot(client=unconfigured_client, alias_map=alias_map)

        parsed = service.parse(CV_TEXT)
        matches = service.match_jobs(parsed.unwrap(), sample_jobs)
        ats = service.ats_score("Python developer with 3+ years of experience", CV_TEXT)

        assert parsed.is_degraded
        assert "python" in parsed.value.skills
        assert matches.is_degraded
        assert len(matches.value) > 0
        assert ats.is_degraded
        assert 0 <= ats.value.ats_score <= 100
        assert unconfigured_client.call_count == 0

    def test_prepare_shares_metrics(self, unconfigured_client, sample_cv, sample_job):
        """Should count both prepared documents in the shared metrics."""
        metrics = MatchingMetrics()
        service = CareerCopilot(client=unconfigured_client, metrics=metrics)

        outcome = service.prepare_application(sample_cv, sample_job, applicant_name="Ada")

        assert outcome.is_degraded
        assert metrics.total_requests == 2
        assert metrics.fallback_count == 2


class TestModuleFunctions:
    """Tests for api.parse / match / match_jobs / ats_score / prepare_application."""

    def test_default_service_is_shared(self):
        """Should create the service once and reuse it."""
        assert api.get_default_service() is api.get_default_service()

    def test_reset(self):
        """Should build a fresh service after reset."""
        first = api.get_default_service()
        api.reset_default_service()

        assert api.get_default_service() is not first

    def test_functions_degrade_without_key(self, sample_job, sample_jobs):
        """Should fall back locally when no API key is configured."""
        parsed = api.parse(CV_TEXT)
        single = api.match(parsed.unwrap(), sample_job)
        many = api.match_jobs(parsed.unwrap(), sample_jobs)
        ats = api.ats_score("Python and SQL required", CV_TEXT)

        for outcome in (parsed, single, many, ats):
            assert outcome.is_degraded
        assert parsed.reason == NOT_CONFIGURED_REASON
        assert single.reason == NOT_CONFIGURED_REASON

    def test_empty_cv_is_error(self):
        """Should reject empty CV text."""
        assert api.parse("").is_error

    def test_prepare_application_without_key(self, sample_cv, sample_job):
        """Should return template documents when no API key is configured."""
        outcome = api.prepare_application(sample_cv, sample_job)

        assert outcome.is_degraded
        assert outcome.value.cover_letter.generated_with == "template"
        assert outcome.value.tailored_cv.generated_with == "template"
