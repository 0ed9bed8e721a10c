"""
Job pre-filtering and search filters.

Pre-filtering runs before any API call to drop obviously mismatched jobs
and order the rest by how likely they are to match; search filters narrow a
job list by explicit user criteria.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, Field

from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.job_matching.models import Job, MatchPreferences
from career_copilot.job_matching.skills import SkillAliasMap, get_default_alias_map

ENTRY_LEVEL_MARKERS = ("junior", "entry", "intern", "graduate")
REMOTE_PRIORITY = 10
SKILL_OVERLAP_PRIORITY = 5

_NUMBER_RE = re.compile(r"\d+")


class SearchFilters(BaseModel):
    """Explicit search criteria; every field is optional."""

    query: Optional[str] = None
    location: Optional[str] = None
    type: Optional[str] = None
    min_salary: Optional[int] = None
    skills: List[str] = Field(default_factory=list)


def is_remote(job: Job) -> bool:
    return "remote" in job.location.lower()


def is_entry_level(job: Job) -> bool:
    title = job.title.lower()
    return any(marker in title for marker in ENTRY_LEVEL_MARKERS)


def parse_max_salary(salary: Optional[str]) -> Optional[int]:
    """
    Largest number in a free-text salary, in whole currency units.

    Numbers below 1000 are read as thousands ("$50k" -> 50000).

    Example:
        >>> parse_max_salary("$80,000 - $120,000")
        120000
        >>> parse_max_salary("50-70k")
        70000
    """
    if not salary:
        return None
    numbers = [int(n) for n in _NUMBER_RE.findall(salary.replace(",", ""))]
    if not numbers:
        return None
    largest = max(numbers)
    return largest * 1000 if largest < 1000 else largest


def _locations_overlap(first: str, second: str) -> bool:
    a, b = first.lower(), second.lower()
    return a in b or b in a


def _skill_overlap_count(candidate_skills: List[str], job: Job) -> int:
    """Requirements covered by a plain substring match (no aliases)."""
    return sum(
        1
        for req in job.requirements
        if any(skill in req.lower() or req.lower() in skill for skill in candidate_skills)
    )


def prefilter_jobs(
    jobs: List[Job],
    candidate: ParsedCv,
    preferences: Optional[MatchPreferences] = None,
    alias_map: Optional[SkillAliasMap] = None,
) -> List[Job]:
    """
    Drop jobs that cannot fit and sort the rest, most promising first.

    A job is kept when:
    - its type overlaps a preferred job type (if any are set)
    - it is remote, or its location overlaps the preferred location (if set)
    - it shares at least one skill with the candidate, or is entry level
      (only checked when the candidate lists skills)

    Sort key: +10 for remote, +5 per requirement the candidate covers.
    """
    aliases = alias_map or get_default_alias_map()
    skills = [s.lower() for s in candidate.skills if s.strip()]

    def keep(job: Job) -> bool:
        if preferences and preferences.preferred_job_types:
            job_type = job.type.lower()
            if not any(
                t.lower() in job_type or job_type in t.lower()
                for t in preferences.preferred_job_types
            ):
                return False

        if preferences and preferences.preferred_location and not is_remote(job):
            if not _locations_overlap(preferences.preferred_location, job.location):
                return False

        if skills:
            overlap = any(aliases.any_match(skills, req) for req in job.requirements)
            if not overlap and not is_entry_level(job):
                return False

        return True

    def priority(job: Job) -> int:
        score = REMOTE_PRIORITY if is_remote(job) else 0
        if skills:
            score += _skill_overlap_count(skills, job) * SKILL_OVERLAP_PRIORITY
        return score

    # sorted() is stable: equal priorities keep input order
    return sorted((job for job in jobs if keep(job)), key=priority, reverse=True)


def apply_search_filters(
    jobs: List[Job],
    filters: SearchFilters,
    alias_map: Optional[SkillAliasMap] = None,
) -> List[Job]:
    """Keep jobs satisfying every criterion set in `filters`."""
    aliases = alias_map or get_default_alias_map()

    def keep(job: Job) -> bool:
        if filters.query:
            haystack = " ".join(
                [job.title, job.company, job.description, " ".join(job.requirements)]
            ).lower()
            if filters.query.lower() not in haystack:
                return False

        if filters.location and not _locations_overlap(filters.location, job.location):
            return False

        if filters.type and job.type.lower() != filters.type.lower():
            return False

        if filters.min_salary:
            max_salary = parse_max_salary(job.salary)
            if max_salary is None or max_salary < filters.min_salary:
                return False

        if filters.skills:
            if not any(
                aliases.matches(skill, req) for skill in filters.skills for req in job.requirements
            ):
                return False

        return True

    return [job for job in jobs if keep(job)]
