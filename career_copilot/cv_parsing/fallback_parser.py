"""
Regex CV parser used when the text-generation API is unavailable.

Only recovers what plain patterns can: email, phone and skills from a fixed
list of common technologies. Experience and education are left as a notice.
"""

import re

from career_copilot.cv_parsing.models import ParsedCv

EMAIL_PATTERN = re.compile(r"[\w._%+-]+@[\w.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(\+?\d{1,3})?[-.\s]?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

COMMON_SKILLS = [
    "javascript", "typescript", "python", "java", "react", "angular", "vue",
    "node.js", "express", "mongodb", "postgresql", "mysql", "sql",
    "html", "css", "sass", "tailwind", "bootstrap", "git", "docker",
    "kubernetes", "aws", "azure", "gcp", "linux", "windows",
    "figma", "photoshop", "illustrator", "sketch",
]

UNPARSED_EXPERIENCE = (
    "Unable to parse experience automatically. "
    "AI integration required for detailed parsing."
)
UNPARSED_EDUCATION = (
    "Unable to parse education automatically. "
    "AI integration required for detailed parsing."
)


def parse_cv_fallback(cv_text: str) -> ParsedCv:
    """
    Best-effort parse with regexes only. Never raises.

    Example:
        >>> cv = parse_cv_fallback("Jane Doe jane@example.com Python, Docker")
        >>> cv.email, cv.skills
        ('jane@example.com', ['python', 'docker'])
    """
    text = cv_text.lower()
    email_match = EMAIL_PATTERN.search(cv_text)
    phone_match = PHONE_PATTERN.search(cv_text)

    # "node.js" is also found as plain "node"
    skills = [
        skill for skill in COMMON_SKILLS
        if skill in text or skill.replace(".js", "") in text
    ]

    return ParsedCv(
        name=None,
        email=email_match.group(0) if email_match else None,
        phone=phone_match.group(0).strip() if phone_match else None,
        skills=skills,
        experience=UNPARSED_EXPERIENCE,
        education=UNPARSED_EDUCATION,
        summary=None,
        location=None,
    )
