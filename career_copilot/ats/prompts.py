"""
ATS keyword extraction prompts.
"""

KEYWORD_SYSTEM_PROMPT = (
    "You are an expert skill extraction system. Extract skills from job "
    "descriptions. Always respond with valid JSON only."
)

KEYWORD_USER_TEMPLATE = """Extract two lists of skills from this job description:
Must-have (explicitly required) and Nice-to-have (preferred/optional).
Respond ONLY in JSON with keys must_have and nice_to_have.

JD:
{job_description}

Rules:
- Must-have: Look for words like "required", "must have", "mandatory", "essential"
- Nice-to-have: Look for words like "preferred", "good to have", "plus", "bonus"
- Deduplicate similar terms (e.g., "Python programming" and "Python" -> one entry)
- Normalize to lowercase, singular form
- Return empty arrays if no skills found in a category

Response format:
{{
  "must_have": ["skill1", "skill2"],
  "nice_to_have": ["skill3", "skill4"]
}}"""
