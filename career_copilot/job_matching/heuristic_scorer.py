"""
Local job-match scorer used when the text-generation API is unavailable.

Deterministic and cheap: no I/O, no randomness. The overall score is a
weighted blend of four sub-scores:

    skills 40% + experience 30% + location 20% + salary 10%
"""

from typing import List, Optional

from career_copilot.common.utils import clamp_score, round_half_up
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.job_matching.models import (
    DimensionMatch,
    Job,
    MatchPreferences,
    MatchResult,
    SkillsMatch,
)
from career_copilot.job_matching.skills import SkillAliasMap, get_default_alias_map

SKILLS_WEIGHT = 0.4
EXPERIENCE_WEIGHT = 0.3
LOCATION_WEIGHT = 0.2
SALARY_WEIGHT = 0.1

EXPERIENCE_BASE = 50
EXPERIENCE_KEYWORD_BONUS = 20
EXPERIENCE_TITLE_BONUS = 15
EXPERIENCE_SUITABLE_THRESHOLD = 60
EXPERIENCE_KEYWORDS = ("years", "experience", "worked", "developed", "managed", "led")

LOCATION_MATCH_SCORE = 90
LOCATION_MISMATCH_SCORE = 30
LOCATION_UNKNOWN_SCORE = 50

# Salary is not compared yet; every posting gets the same neutral score.
SALARY_SCORE = 70


class HeuristicFallbackScorer:
    """Weighted keyword scorer producing a full MatchResult."""

    def __init__(self, alias_map: Optional[SkillAliasMap] = None):
        self.alias_map = alias_map or get_default_alias_map()

    def score(
        self,
        candidate: ParsedCv,
        job: Job,
        preferences: Optional[MatchPreferences] = None,
    ) -> MatchResult:
        # preferences only shape the API prompt
        skills = self.score_skills(candidate.skills, job.requirements)
        experience = self.score_experience(candidate.experience, job.title)
        location = self.score_location(candidate.location, job.location)
        salary = self.score_salary(job.salary)

        overall = clamp_score(
            skills.score * SKILLS_WEIGHT
            + experience.score * EXPERIENCE_WEIGHT
            + location.score * LOCATION_WEIGHT
            + salary.score * SALARY_WEIGHT
        )

        return MatchResult(
            job=job,
            match_score=overall,
            explanation=self._explain(skills, len(job.requirements)),
            skills_match=skills,
            experience_match=experience,
            location_match=location,
            salary_match=salary,
        )

    def score_skills(self, candidate_skills: List[str], requirements: List[str]) -> SkillsMatch:
        """
        Requirement-by-requirement coverage.

        Example:
            skills ["React", "TypeScript"] vs requirements ["react", "node.js"]
            -> score 50, matched ["react"], missing ["node.js"]
        """
        skills = [s.lower() for s in candidate_skills if s and s.strip()]
        matched: List[str] = []
        missing: List[str] = []
        for requirement in (r.lower() for r in requirements):
            if self.alias_map.any_match(skills, requirement):
                matched.append(requirement)
            else:
                missing.append(requirement)

        score = round_half_up(len(matched) / len(requirements) * 100) if matched else 0
        return SkillsMatch(matched=matched, missing=missing, score=score)

    def score_experience(self, experience: str, job_title: str) -> DimensionMatch:
        text = (experience or "").lower()
        score = EXPERIENCE_BASE
        if any(keyword in text for keyword in EXPERIENCE_KEYWORDS):
            score += EXPERIENCE_KEYWORD_BONUS
        title_words = [word for word in (job_title or "").lower().split(" ") if len(word) > 3]
        if any(word in text for word in title_words):
            score += EXPERIENCE_TITLE_BONUS

        suitable = score >= EXPERIENCE_SUITABLE_THRESHOLD
        return DimensionMatch(
            suitable=suitable,
            explanation="Experience appears suitable" if suitable else "Experience may need review",
            score=score,
        )

    def score_location(self, candidate_location: Optional[str], job_location: str) -> DimensionMatch:
        job_loc = (job_location or "").lower()
        if "remote" in job_loc:
            return DimensionMatch(
                suitable=True,
                explanation="Remote position - location flexible",
                score=LOCATION_MATCH_SCORE,
            )

        candidate_loc = (candidate_location or "").lower().strip()
        job_loc = job_loc.strip()
        if candidate_loc and job_loc:
            if candidate_loc in job_loc or job_loc in candidate_loc:
                return DimensionMatch(
                    suitable=True,
                    explanation="Location matches candidate preference",
                    score=LOCATION_MATCH_SCORE,
                )
            return DimensionMatch(
                suitable=False,
                explanation="Location may require relocation",
                score=LOCATION_MISMATCH_SCORE,
            )

        return DimensionMatch(
            suitable=True,
            explanation="Location compatibility needs review",
            score=LOCATION_UNKNOWN_SCORE,
        )

    def score_salary(self, salary: Optional[str]) -> DimensionMatch:
        if not salary:
            explanation = "Salary not specified in job posting"
        else:
            explanation = "Salary compatibility needs review"
        return DimensionMatch(suitable=True, explanation=explanation, score=SALARY_SCORE)

    @staticmethod
    def _explain(skills: SkillsMatch, total: int) -> str:
        explanation = (
            f"{skills.score}% skills match with {len(skills.matched)}/{total} requirements met."
        )
        if skills.matched:
            explanation += f" Strong match in: {', '.join(skills.matched[:3])}."
        if 0 < len(skills.missing) <= 3:
            explanation += f" May need development in: {', '.join(skills.missing)}."
        return explanation
