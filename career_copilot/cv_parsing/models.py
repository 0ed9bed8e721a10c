"""
Parsed CV value object.

The API is asked for a fixed JSON shape, but nothing it returns is trusted:
every field is coerced to the right type and capped on ingestion.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

MAX_SKILLS = 20
MAX_EXPERIENCE_CHARS = 1000
MAX_EDUCATION_CHARS = 1000
MAX_SUMMARY_CHARS = 500
MAX_SHORT_FIELD_CHARS = 200


def _clean_optional(value: Any, limit: int) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "null":
        return None
    return text[:limit]


class ParsedCv(BaseModel):
    """Structured fields extracted from CV text."""

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: str = ""
    education: str = ""
    summary: Optional[str] = None
    location: Optional[str] = None

    @field_validator("name", "email", "phone", "location", mode="before")
    @classmethod
    def cap_short_fields(cls, v: Any) -> Optional[str]:
        return _clean_optional(v, MAX_SHORT_FIELD_CHARS)

    @field_validator("summary", mode="before")
    @classmethod
    def cap_summary(cls, v: Any) -> Optional[str]:
        return _clean_optional(v, MAX_SUMMARY_CHARS)

    @field_validator("experience", mode="before")
    @classmethod
    def cap_experience(cls, v: Any) -> str:
        return _clean_optional(v, MAX_EXPERIENCE_CHARS) or ""

    @field_validator("education", mode="before")
    @classmethod
    def cap_education(cls, v: Any) -> str:
        return _clean_optional(v, MAX_EDUCATION_CHARS) or ""

    @field_validator("skills", mode="before")
    @classmethod
    def clean_skills(cls, v: Any) -> List[str]:
        """Drop blanks and duplicates, keep the first MAX_SKILLS."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [part for part in v.split(",")]
        if not isinstance(v, (list, tuple)):
            return []
        seen = set()
        result = []
        for skill in v:
            if skill is None:
                continue
            skill_clean = str(skill).strip()
            if skill_clean and skill_clean.lower() not in seen:
                seen.add(skill_clean.lower())
                result.append(skill_clean[:MAX_SHORT_FIELD_CHARS])
        return result[:MAX_SKILLS]
