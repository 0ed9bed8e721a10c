"""
Template fallbacks for when the text-generation API is unavailable.

Both never raise and never call the network.
"""

from typing import List

from career_copilot.application_prep.models import CoverLetter, GeneratedWith, TailoredCv
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.job_matching.models import Job

DEFAULT_TEMPLATE_NAME = "default_cover_letter"
TEMPLATE_SKILLS = 3
TEMPLATE_KEYWORDS = 5
REORDERED_SKILLS_CHANGE = "Reordered skills to match job requirements"

COVER_LETTER_TEMPLATE = """Dear Hiring Manager,

I am writing to express my strong interest in the {title} position at {company}. With my background in {skills} and proven experience in the field, I am excited about the opportunity to contribute to your team.

In my previous roles, I have developed expertise in {skills} which directly aligns with your requirements. I am particularly drawn to {company} because of its reputation for innovation and excellence in the industry.

I would welcome the opportunity to discuss how my skills and enthusiasm can contribute to your team's success. Thank you for considering my application.

Best regards,
{name}
{email}"""

TAILORED_CV_TEMPLATE = """SKILLS: {skills}

EXPERIENCE: {experience}

EDUCATION: {education}

Note: This CV has been optimized for the {title} position at {company}."""


def cover_letter_from_template(
    cv: ParsedCv,
    job: Job,
    applicant_name: str,
    applicant_email: str = "",
) -> CoverLetter:
    content = COVER_LETTER_TEMPLATE.format(
        title=job.title,
        company=job.company,
        skills=", ".join(cv.skills[:TEMPLATE_SKILLS]) or "relevant skills",
        name=applicant_name,
        email=applicant_email,
    )
    return CoverLetter(
        content=content.rstrip(),
        generated_with=GeneratedWith.TEMPLATE,
        template_used=DEFAULT_TEMPLATE_NAME,
    )


def prioritize_skills(skills: List[str], requirements: List[str]) -> List[str]:
    """
    Skills that overlap one of the first few requirements come first.

    A skill overlaps when either string contains the other, ignoring case.
    Order is otherwise preserved.
    """
    keywords = [r.lower() for r in requirements[:TEMPLATE_KEYWORDS] if r]

    def overlaps(skill: str) -> bool:
        lowered = skill.lower()
        return any(k in lowered or lowered in k for k in keywords)

    matching = [s for s in skills if overlaps(s)]
    return matching + [s for s in skills if s not in matching]


def tailor_cv_from_template(cv: ParsedCv, job: Job) -> TailoredCv:
    content = TAILORED_CV_TEMPLATE.format(
        skills=", ".join(prioritize_skills(cv.skills, job.requirements)),
        experience=cv.experience or "Professional experience in various roles",
        education=cv.education or "Educational background",
        title=job.title,
        company=job.company,
    )
    return TailoredCv(
        content=content,
        generated_with=GeneratedWith.TEMPLATE,
        key_changes=[REORDERED_SKILLS_CHANGE],
    )
