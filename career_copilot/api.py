"""
Public entry points.

    from career_copilot import api

    parsed = api.parse(cv_text).unwrap()
    outcome = api.match(parsed, job)
    if outcome.is_degraded:
        print(f"Low-confidence score ({outcome.reason})")

Every call returns an Outcome that carries a value unless the input was
rejected. The module-level functions share one lazily created
CareerCopilot service; build a CareerCopilot yourself to inject clients,
caches or metrics.
"""

from typing import Any, Dict, List, Optional

from career_copilot.application_prep.models import PreparedApplication
from career_copilot.application_prep.preparer import ApplicationPreparer
from career_copilot.ats.ats_scorer import AtsScorer
from career_copilot.ats.models import AtsScoreResult
from career_copilot.common.config import Config
from career_copilot.common.llm_client import JsonCompletionClient
from career_copilot.common.logger import get_logger
from career_copilot.common.metrics import MatchingMetrics
from career_copilot.common.outcome import Outcome
from career_copilot.common.retrying_caller import SleepFn
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.cv_parsing.parser import CvParser
from career_copilot.job_matching.matcher import (
    CandidateInput,
    JobInput,
    JobMatcher,
    PreferencesInput,
)
from career_copilot.job_matching.models import MatchResult
from career_copilot.job_matching.skills import SkillAliasMap

logger = get_logger(__name__)


class CareerCopilot:
    """Every service behind one client and one metrics sink."""

    def __init__(
        self,
        client: Optional[JsonCompletionClient] = None,
        alias_map: Optional[SkillAliasMap] = None,
        metrics: Optional[MatchingMetrics] = None,
        sleep: Optional[SleepFn] = None,
    ):
        """
        Args:
            client: Text-generation client for every service. When
                omitted each service builds its own with its own temperature.
            alias_map: Skill synonyms (defaults to Config.SKILL_ALIASES_PATH)
            metrics: Shared metrics sink
            sleep: Awaitable sleep for retry backoff and batch delays
        """
        self.metrics = metrics or MatchingMetrics()
        self.parser = CvParser(client=client, metrics=self.metrics, sleep=sleep)
        self.matcher = JobMatcher(
            client=client, alias_map=alias_map, metrics=self.metrics, sleep=sleep
        )
        self.ats = AtsScorer(client=client, metrics=self.metrics, sleep=sleep)
        self.preparer = ApplicationPreparer(client=client, metrics=self.metrics, sleep=sleep)

    def parse(self, cv_text: str) -> Outcome[ParsedCv]:
        return self.parser.parse(cv_text)

    def match(
        self,
        candidate: CandidateInput,
        job: JobInput,
        preferences: PreferencesInput = None,
    ) -> Outcome[MatchResult]:
        return self.matcher.match(candidate, job, preferences)

    def match_jobs(
        self,
        candidate: CandidateInput,
        jobs: List[JobInput],
        preferences: PreferencesInput = None,
    ) -> Outcome[List[MatchResult]]:
        return self.matcher.match_jobs(candidate, jobs, preferences)

    def ats_score(self, job_description: str, resume_text: str) -> Outcome[AtsScoreResult]:
        return self.ats.score(job_description, resume_text)

    def prepare_application(
        self,
        candidate: CandidateInput,
        job: JobInput,
        applicant_name: Optional[str] = None,
        applicant_email: Optional[str] = None,
    ) -> Outcome[PreparedApplication]:
        return self.preparer.prepare(candidate, job, applicant_name, applicant_email)

    def get_metrics(self) -> Dict[str, Any]:
        return self.matcher.get_metrics()


_default_service: Optional[CareerCopilot] = None


def get_default_service() -> CareerCopilot:
    """Shared service, created on first use from Config."""
    global _default_service
    if _default_service is None:
        Config.validate()
        _default_service = CareerCopilot()
        logger.info(Config.summary())
    return _default_service


def reset_default_service() -> None:
    """Drop the shared service (and its caches)."""
    global _default_service
    _default_service = None


def parse(text: str) -> Outcome[ParsedCv]:
    """Parse CV text. See CvParser.parse_async()."""
    return get_default_service().parse(text)


def match(
    candidate: CandidateInput,
    job: JobInput,
    preferences: PreferencesInput = None,
) -> Outcome[MatchResult]:
    """Score a candidate against one job. See JobMatcher.match_async()."""
    return get_default_service().match(candidate, job, preferences)


def match_jobs(
    candidate: CandidateInput,
    jobs: List[JobInput],
    preferences: PreferencesInput = None,
) -> Outcome[List[MatchResult]]:
    """Score a candidate against many jobs, best first."""
    return get_default_service().match_jobs(candidate, jobs, preferences)


def ats_score(job_description: str, resume_text: str) -> Outcome[AtsScoreResult]:
    """Keyword-coverage score of a resume against a job description."""
    return get_default_service().ats_score(job_description, resume_text)


def prepare_application(
    candidate: CandidateInput,
    job: JobInput,
    applicant_name: Optional[str] = None,
    applicant_email: Optional[str] = None,
) -> Outcome[PreparedApplication]:
    """Cover letter and tailored CV for one job. See ApplicationPreparer.prepare_async()."""
    return get_default_service().prepare_application(
        candidate, job, applicant_name, applicant_email
    )
