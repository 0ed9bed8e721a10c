"""
Job matching value objects.

MatchResult accepts both snake_case and the camelCase keys older prompts
produced (matchScore, skillsMatch, ...). Every score is clamped into
[0, 100] so a malformed number from the API never escapes.
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from career_copilot.common.error_handling import MalformedResponseError
from career_copilot.common.utils import clamp_score


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y")
    return bool(value)


class Job(BaseModel):
    """A job posting as seen by the matcher."""

    id: str
    title: str
    company: str = ""
    location: str = ""
    type: str = "full-time"
    salary: Optional[str] = None
    description: str = ""
    requirements: List[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("location", "company", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, v: Any) -> str:
        return str(v) if v else "full-time"

    @field_validator("salary", mode="before")
    @classmethod
    def blank_salary(cls, v: Any) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return str(v)

    @field_validator("requirements", mode="before")
    @classmethod
    def clean_requirements(cls, v: Any) -> List[str]:
        if not v:
            return []
        return [str(item).strip() for item in v if item is not None and str(item).strip()]


class MatchPreferences(BaseModel):
    """Optional user preferences that steer matching and filtering."""

    preferred_location: Optional[str] = None
    salary_expectation: Optional[str] = None
    preferred_job_types: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class SkillsMatch(BaseModel):
    matched: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    score: int = 0

    @field_validator("matched", "missing", mode="before")
    @classmethod
    def list_of_strings(cls, v: Any) -> List[str]:
        if not isinstance(v, (list, tuple)):
            return []
        return [str(item) for item in v if item is not None]

    @field_validator("score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> int:
        return clamp_score(v)


class DimensionMatch(BaseModel):
    """One scored dimension: experience, location or salary."""

    suitable: bool = False
    explanation: str = ""
    score: int = 0

    @field_validator("suitable", mode="before")
    @classmethod
    def coerce_suitable(cls, v: Any) -> bool:
        return _coerce_bool(v)

    @field_validator("explanation", mode="before")
    @classmethod
    def coerce_explanation(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> int:
        return clamp_score(v)


class MatchResult(BaseModel):
    """Compatibility score of one candidate against one job."""

    model_config = ConfigDict(populate_by_name=True)

    job: Job
    match_score: int = Field(
        default=0, validation_alias=AliasChoices("match_score", "matchScore")
    )
    explanation: str = ""
    skills_match: SkillsMatch = Field(
        default_factory=SkillsMatch,
        validation_alias=AliasChoices("skills_match", "skillsMatch"),
    )
    experience_match: DimensionMatch = Field(
        default_factory=DimensionMatch,
        validation_alias=AliasChoices("experience_match", "experienceMatch"),
    )
    location_match: DimensionMatch = Field(
        default_factory=DimensionMatch,
        validation_alias=AliasChoices("location_match", "locationMatch"),
    )
    salary_match: DimensionMatch = Field(
        default_factory=DimensionMatch,
        validation_alias=AliasChoices("salary_match", "salaryMatch"),
    )

    @field_validator("match_score", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> int:
        return clamp_score(v)

    @field_validator("explanation", mode="before")
    @classmethod
    def coerce_explanation(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("skills_match", "experience_match", "location_match", "salary_match", mode="before")
    @classmethod
    def dict_or_default(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, BaseModel)) else {}

    @classmethod
    def from_llm(cls, job: Job, data: Dict[str, Any]) -> "MatchResult":
        """
        Build a result from one API answer.

        Raises:
            MalformedResponseError: No overall score in the payload
        """
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Match payload is not an object: {data!r:.200}")
        if data.get("match_score") is None and data.get("matchScore") is None:
            raise MalformedResponseError(f"Match payload has no match_score: {str(data)[:200]}")

        payload = dict(data)
        payload.pop("job", None)
        payload.pop("job_id", None)
        for key, camel, default in (
            ("experience_match", "experienceMatch", "Experience compatibility analyzed"),
            ("location_match", "locationMatch", "Location compatibility analyzed"),
            ("salary_match", "salaryMatch", "Salary compatibility analyzed"),
        ):
            section = payload.get(key, payload.get(camel))
            if isinstance(section, dict) and not section.get("explanation"):
                payload[key] = {**section, "explanation": default}
                payload.pop(camel, None)
        if not payload.get("explanation"):
            payload["explanation"] = "AI analysis completed"
        try:
            return cls(job=job, **payload)
        except ValidationError as e:
            raise MalformedResponseError(f"Match payload failed validation: {e}") from e

    def with_score(self, score: int) -> "MatchResult":
        return self.model_copy(update={"match_score": clamp_score(score)})
