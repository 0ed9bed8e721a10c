"""
ATS scoring: keyword coverage of a resume against a job description.
"""

from career_copilot.ats.ats_scorer import AtsScorer, extract_keywords_fallback
from career_copilot.ats.models import AtsScoreResult, KeywordSet

__all__ = [
    "AtsScorer",
    "AtsScoreResult",
    "KeywordSet",
    "extract_keywords_fallback",
]
