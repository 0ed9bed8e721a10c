"""
Application preparation: cover letters and job-tailored CVs, written by the
text-generation API with template fallbacks.
"""

from career_copilot.application_prep.models import (
    CoverLetter,
    GeneratedWith,
    PreparedApplication,
    TailoredCv,
)
from career_copilot.application_prep.preparer import ApplicationPreparer
from career_copilot.application_prep.templates import (
    cover_letter_from_template,
    tailor_cv_from_template,
)

__all__ = [
    "ApplicationPreparer",
    "CoverLetter",
    "GeneratedWith",
    "PreparedApplication",
    "TailoredCv",
    "cover_letter_from_template",
    "tailor_cv_from_template",
]
