"""
CV parsing prompts.
"""

CV_PARSE_SYSTEM_PROMPT = (
    "You are an expert CV parser that extracts structured information from "
    "resume/CV text and returns it as valid JSON. Always respond with properly "
    "formatted JSON only."
)

CV_PARSE_USER_TEMPLATE = """Extract structured information from the following CV text and return it as JSON.

Extract:
- name: Full name of the person
- email: Email address
- phone: Phone number
- skills: Array of technical skills, technologies, and competencies
- experience: Summary of work experience (years and key roles)
- education: Educational background (degrees, institutions)
- summary: Brief professional summary or objective (if present)
- location: Current location or preferred location

If a field is not found, use null for strings or an empty array for skills.

CV Text:
{cv_text}

Return only valid JSON in this format:
{{
  "name": "string or null",
  "email": "string or null",
  "phone": "string or null",
  "skills": ["skill1", "skill2"],
  "experience": "string or null",
  "education": "string or null",
  "summary": "string or null",
  "location": "string or null"
}}"""
