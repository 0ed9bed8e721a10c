"""
ATS Scorer

Scores how well a resume covers the keywords of a job description.

1. Extract must-have and nice-to-have keywords from the job description
   (text-generation API, regex fallback)
2. Match each keyword against the cleaned resume text
3. Score = round(matched_must / must * 70 + matched_nice / nice * 30)
"""

import re
from typing import Dict, List, Optional

from pydantic import ValidationError

from career_copilot.ats.models import AtsScoreResult, KeywordSet
from career_copilot.ats.prompts import KEYWORD_SYSTEM_PROMPT, KEYWORD_USER_TEMPLATE
from career_copilot.common.config import Config
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
from career_copilot.common.utils import round_half_up, run_async

MUST_HAVE_WEIGHT = 70
NICE_TO_HAVE_WEIGHT = 30

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

# Pattern families for the regex fallback, most important first.
SKILL_PATTERNS = [
    # Core technical skills
    re.compile(
        r"\b(python|java|javascript|react|angular|vue|typescript|sql|html|css|php|ruby|go|rust"
        r"|scala|kotlin|programming|development|software|coding)\b"
    ),
    # Experience requirements
    re.compile(
        r"\b(\d+\+?\s*years?\s*(of\s*)?(experience|background)|experience\s+in"
        r"|experience\s+with|background\s+in)\b"
    ),
    # Technologies and platforms
    re.compile(
        r"\b(aws|azure|gcp|google\s*cloud|docker|kubernetes|git|linux|mysql|postgresql|mongodb"
        r"|node\.?js|express|django|flask|spring|laravel|rails)\b"
    ),
    # Management and business skills
    re.compile(
        r"\b(project\s*management|program\s*management|operations|product\s*management"
        r"|stakeholder\s*management|problem\s*solving|execution)\b"
    ),
    # Education and qualifications
    re.compile(r"\b(bachelor|master|mba|degree|graduation|qualified|certification)\b"),
    # Process and methodology
    re.compile(
        r"\b(agile|scrum|devops|lean|kanban|processes|operational|design|scaling|curriculum"
        r"|content|educational|edtech)\b"
    ),
    # Data and analytics
    re.compile(r"\b(excel|analytical|data|analytics|tools|proficiency)\b"),
]

MUST_HAVE_MARKERS = re.compile(
    r"\b(years|experience|programming|development|software|degree|bachelor|master"
    r"|project management|operations|stakeholder|problem solving)\b"
)

GENERIC_MUST_HAVES = ["experience", "degree"]
GENERIC_NICE_TO_HAVES = ["analytical", "excel"]
MIN_FALLBACK_KEYWORDS = 3
MIN_MUST_HAVES = 3
MAX_PROMOTED = 2


def clean_text(text: str) -> str:
    """Lowercase, punctuation to spaces, collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", _PUNCTUATION_RE.sub(" ", (text or "").lower())).strip()


def extract_keywords_fallback(job_description: str) -> KeywordSet:
    """
    Regex keyword extraction. Never raises.

    Terms that look like hard requirements (experience, degrees, core
    engineering words) are must-haves; everything else is nice-to-have.
    """
    text = job_description.lower()

    found: Dict[str, None] = {}
    for pattern in SKILL_PATTERNS:
        for match in pattern.finditer(text):
            cleaned = clean_text(match.group(0))
            if len(cleaned) > 2:
                found.setdefault(cleaned, None)

    must_have: List[str] = []
    nice_to_have: List[str] = []
    for skill in found:
        if MUST_HAVE_MARKERS.search(skill):
            must_have.append(skill)
        else:
            nice_to_have.append(skill)

    if len(found) < MIN_FALLBACK_KEYWORDS:
        must_have.extend(GENERIC_MUST_HAVES)
        nice_to_have.extend(GENERIC_NICE_TO_HAVES)

    if len(must_have) < MIN_MUST_HAVES and len(nice_to_have) > 1:
        promoted = nice_to_have[:MAX_PROMOTED]
        nice_to_have = nice_to_have[MAX_PROMOTED:]
        must_have.extend(promoted)

    return KeywordSet(must_have=must_have, nice_to_have=nice_to_have)


def match_keywords(keywords: List[str], resume_text: str) -> Dict[str, List[str]]:
    """Split keywords into those found in the resume and those missing."""
    resume = clean_text(resume_text)
    matched: List[str] = []
    missing: List[str] = []
    for keyword in keywords:
        needle = clean_text(keyword)
        if needle and needle in resume:
            matched.append(keyword)
        else:
            missing.append(keyword)
    return {"matched": matched, "missing": missing}


def compute_ats_score(
    keywords: KeywordSet,
    matched_must: List[str],
    matched_nice: List[str],
) -> AtsScoreResult:
    must_total = len(keywords.must_have)
    nice_total = len(keywords.nice_to_have)

    if must_total == 0 and nice_total == 0:
        return AtsScoreResult(
            ats_score=0,
            explanation="No skills were identified in the job description for scoring.",
        )

    must_score = len(matched_must) / must_total * MUST_HAVE_WEIGHT if must_total else 0
    nice_score = len(matched_nice) / nice_total * NICE_TO_HAVE_WEIGHT if nice_total else 0

    return AtsScoreResult(
        ats_score=round_half_up(must_score + nice_score),
        matched_must_haves=matched_must,
        missing_must_haves=[k for k in keywords.must_have if k not in matched_must],
        matched_nice_haves=matched_nice,
        missing_nice_haves=[k for k in keywords.nice_to_have if k not in matched_nice],
        explanation=(
            f"Matched {len(matched_must)}/{must_total} must-have and "
            f"{len(matched_nice)}/{nice_total} nice-to-have skills."
        ),
    )


class AtsScorer:
    """Keyword-coverage scorer for a resume against a job description."""

    def __init__(
        self,
        client: Optional[JsonCompletionClient] = None,
        caller: Optional[RetryingExternalCaller] = None,
        metrics: Optional[MatchingMetrics] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.metrics = metrics or MatchingMetrics()
        self.client: JsonCompletionClient = client or TextGenerationClient(
            temperature=Config.ATS_TEMPERATURE,
            max_tokens=Config.ATS_MAX_TOKENS,
        )
        self.caller = caller or build_service_caller(
            "ats_scorer", "openai-ats", sleep=sleep, metrics=self.metrics
        )
        self._logger = get_logger(__name__, component="ats_scorer")

    async def _extract_with_llm(self, job_description: str) -> KeywordSet:
        data = await self.client.complete_json(
            KEYWORD_SYSTEM_PROMPT,
            KEYWORD_USER_TEMPLATE.format(job_description=job_description),
        )
        try:
            return KeywordSet.model_validate(
                {"must_have": data.get("must_have"), "nice_to_have": data.get("nice_to_have")}
            )
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid keyword extraction response format: {str(data)[:200]}"
            ) from e

    async def extract_keywords_async(self, job_description: str) -> Outcome[KeywordSet]:
        if not job_description or not job_description.strip():
            return Outcome.error("No job description provided")
        return await self.caller.call(
            lambda: self._extract_with_llm(job_description),
            fallback=lambda: extract_keywords_fallback(job_description),
            operation_name="extract_keywords",
            unavailable_reason=None if self.client.is_configured() else NOT_CONFIGURED_REASON,
        )

    async def score_async(self, job_description: str, resume_text: str) -> Outcome[AtsScoreResult]:
        """
        Score a resume against a job description.

        Returns:
            Outcome.ok when the API extracted the keywords, Outcome.degraded
            when the regex fallback did, Outcome.error for an empty job
            description.
        """
        self.metrics.record_request()
        keywords = await self.extract_keywords_async(job_description)
        if keywords.is_error:
            self._logger.warning(f"ATS scoring rejected input: {keywords.reason}")
            return keywords  # type: ignore[return-value]

        keyword_set: KeywordSet = keywords.value  # type: ignore[assignment]
        must = match_keywords(keyword_set.must_have, resume_text or "")
        nice = match_keywords(keyword_set.nice_to_have, resume_text or "")
        result = compute_ats_score(keyword_set, must["matched"], nice["matched"])

        self._logger.info(
            f"ATS score {result.ats_score}: must-have "
            f"{len(must['matched'])}/{len(keyword_set.must_have)}, nice-to-have "
            f"{len(nice['matched'])}/{len(keyword_set.nice_to_have)}"
        )
        return keywords.map(lambda _: result)

    def score(self, job_description: str, resume_text: str) -> Outcome[AtsScoreResult]:
        """Synchronous wrapper for score_async()."""
        return run_async(self.score_async(job_description, resume_text))
