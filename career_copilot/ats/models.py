"""
ATS scoring value objects.
"""

from typing import Any, List

from pydantic import BaseModel, Field, field_validator

from career_copilot.common.utils import clamp_score


class KeywordSet(BaseModel):
    """Skills a job description asks for, split by how strongly."""

    must_have: List[str] = Field(default_factory=list)
    nice_to_have: List[str] = Field(default_factory=list)

    @field_validator("must_have", "nice_to_have", mode="before")
    @classmethod
    def normalize_keywords(cls, v: Any) -> List[str]:
        """Lowercase, strip and deduplicate, keeping first-seen order."""
        if not isinstance(v, (list, tuple)):
            raise ValueError("keywords must be a list")
        seen = set()
        result = []
        for kw in v:
            if kw is None:
                continue
            kw_clean = str(kw).strip().lower()
            if len(kw_clean) > 1 and kw_clean not in seen:
                seen.add(kw_clean)
                result.append(kw_clean)
        return result

    @property
    def is_empty(self) -> bool:
        return not self.must_have and not self.nice_to_have


class AtsScoreResult(BaseModel):
    """How well a resume covers the keywords of a job description."""

    ats_score: int = 0
    matched_must_haves: List[str] = Field(default_factory=list)
    missing_must_haves: List[str] = Field(default_factory=list)
    matched_nice_haves: List[str] = Field(default_factory=list)
    missing_nice_haves: List[str] = Field(default_factory=list)
    explanation: str = ""

    @field_validator("ats_score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> int:
        return clamp_score(v)
