"""
Application preparation prompts.

Both prompts ask for JSON because every service shares the JSON-mode client.
"""

from typing import Optional

from career_copilot.common.utils import truncate
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.job_matching.models import Job

COVER_LETTER_MAX_DESCRIPTION_CHARS = 500
COVER_LETTER_MAX_REQUIREMENTS = 5
COVER_LETTER_MAX_SKILLS = 8
COVER_LETTER_MAX_EXPERIENCE_CHARS = 300
COVER_LETTER_MAX_EDUCATION_CHARS = 200

TAILOR_MAX_REQUIREMENTS = 8
TAILOR_MAX_DESCRIPTION_CHARS = 400

COVER_LETTER_SYSTEM_PROMPT = (
    "You are an expert career advisor who writes compelling cover letters. "
    "Write professional, personalized cover letters that highlight relevant "
    "experience and show genuine interest in the role. Always respond with "
    "properly formatted JSON only."
)

COVER_LETTER_USER_TEMPLATE = """Write a professional cover letter for the following job application:

Job Details:
- Position: {title}
- Company: {company}
- Location: {location}
- Job Description: {description}
- Key Requirements: {requirements}

Candidate Information:
- Name: {name}
- Skills: {skills}
- Experience: {experience}
- Education: {education}

Instructions:
1. Address the hiring manager professionally
2. Show enthusiasm for the specific role and company
3. Highlight 2-3 most relevant skills/experiences from the CV
4. Keep it concise (under 300 words)
5. Include a strong closing with call to action
6. Use professional tone throughout

Return only valid JSON in this format:
{{
  "cover_letter": "the complete, ready-to-send cover letter"
}}"""

CV_TAILOR_SYSTEM_PROMPT = (
    "You are an expert resume writer who tailors CVs to specific job requirements. "
    "Focus on highlighting relevant skills and experience while maintaining "
    "truthfulness and professional formatting. Always respond with properly "
    "formatted JSON only."
)

CV_TAILOR_USER_TEMPLATE = """Tailor the following CV content for this specific job opportunity:

Job Details:
- Position: {title}
- Company: {company}
- Requirements: {requirements}
- Job Description: {description}

Current CV Content:
- Skills: {skills}
- Experience: {experience}
- Education: {education}

Instructions:
1. Reorder and emphasize skills that match job requirements
2. Adjust experience descriptions to highlight relevant achievements
3. Use keywords from the job description naturally
4. Maintain truthful representation of qualifications
5. Keep professional formatting
6. Optimize for ATS systems

Return only valid JSON in this format:
{{
  "content": "the tailored CV text",
  "key_changes": ["change 1", "change 2"]
}}"""


def _join(items, limit: Optional[int], default: str) -> str:
    selected = items[:limit] if limit is not None else items
    return ", ".join(selected) or default


def build_cover_letter_prompt(cv: ParsedCv, job: Job, applicant_name: str) -> str:
    return COVER_LETTER_USER_TEMPLATE.format(
        title=job.title,
        company=job.company,
        location=job.location,
        description=truncate(job.description, COVER_LETTER_MAX_DESCRIPTION_CHARS),
        requirements=_join(job.requirements, COVER_LETTER_MAX_REQUIREMENTS, "Not specified"),
        name=applicant_name,
        skills=_join(cv.skills, COVER_LETTER_MAX_SKILLS, "Various skills"),
        experience=truncate(cv.experience, COVER_LETTER_MAX_EXPERIENCE_CHARS)
        or "Professional experience",
        education=truncate(cv.education, COVER_LETTER_MAX_EDUCATION_CHARS)
        or "Educational background",
    )


def build_tailoring_prompt(cv: ParsedCv, job: Job) -> str:
    return CV_TAILOR_USER_TEMPLATE.format(
        title=job.title,
        company=job.company,
        requirements=_join(job.requirements, TAILOR_MAX_REQUIREMENTS, "Not specified"),
        description=truncate(job.description, TAILOR_MAX_DESCRIPTION_CHARS),
        skills=_join(cv.skills, None, "Not specified"),
        experience=cv.experience or "Not specified",
        education=cv.education or "Not specified",
    )
