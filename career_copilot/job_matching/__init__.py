"""
Job matching: API scoring with a heuristic fallback, batching, pre-filtering
and personalization.
"""

from career_copilot.job_matching.batch import BatchOrchestrator, BatchReport, ItemState
from career_copilot.job_matching.filters import SearchFilters, apply_search_filters, prefilter_jobs
from career_copilot.job_matching.heuristic_scorer import HeuristicFallbackScorer
from career_copilot.job_matching.matcher import JobMatcher
from career_copilot.job_matching.models import (
    DimensionMatch,
    Job,
    MatchPreferences,
    MatchResult,
    SkillsMatch,
)
from career_copilot.job_matching.personalization import UserBehaviorTracker
from career_copilot.job_matching.skills import SkillAliasMap

__all__ = [
    "BatchOrchestrator",
    "BatchReport",
    "DimensionMatch",
    "HeuristicFallbackScorer",
    "ItemState",
    "Job",
    "JobMatcher",
    "MatchPreferences",
    "MatchResult",
    "SearchFilters",
    "SkillAliasMap",
    "SkillsMatch",
    "UserBehaviorTracker",
    "apply_search_filters",
    "prefilter_jobs",
]
