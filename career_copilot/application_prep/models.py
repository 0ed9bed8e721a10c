"""
Application preparation value objects.

generated_with records which path wrote the text, so callers can tell an
API-written letter from the fixed template without inspecting the Outcome.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator


class GeneratedWith(str, Enum):
    OPENAI = "openai"
    TEMPLATE = "template"


class CoverLetter(BaseModel):
    """A ready-to-send cover letter."""

    content: str
    generated_with: GeneratedWith
    template_used: Optional[str] = None
    processing_time_ms: float = 0.0

    @property
    def word_count(self) -> int:
        return len(self.content.split())


class TailoredCv(BaseModel):
    """CV text rewritten for one job, with a list of what changed."""

    content: str
    generated_with: GeneratedWith
    key_changes: List[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0

    @field_validator("key_changes", mode="before")
    @classmethod
    def list_of_strings(cls, v: Any) -> List[str]:
        if not isinstance(v, (list, tuple)):
            return []
        return [str(item).strip() for item in v if item is not None and str(item).strip()]


class PreparedApplication(BaseModel):
    cover_letter: CoverLetter
    tailored_cv: TailoredCv
