"""
Job matching prompts.

Prompts are kept short: candidate skills, experience and job requirements
are truncated before they are formatted in, which keeps one match well
under the completion budget.
"""

MATCH_RESULT_SCHEMA = """{
  "match_score": 0-100,
  "explanation": "Brief explanation of overall compatibility",
  "skills_match": {"matched": ["skill"], "missing": ["skill"], "score": 0-100},
  "experience_match": {"suitable": true, "explanation": "...", "score": 0-100},
  "location_match": {"suitable": true, "explanation": "...", "score": 0-100},
  "salary_match": {"suitable": true, "explanation": "...", "score": 0-100}
}"""

MATCH_SYSTEM_PROMPT = f"""You analyze job-candidate compatibility.

Return ONLY a JSON object with this shape:
{MATCH_RESULT_SCHEMA}

Consider skills overlap, experience level, location and remote options, and
salary alignment with the candidate's expectations."""

MATCH_USER_TEMPLATE = """Job: {title} at {company}
Location: {job_location}
Type: {job_type}
Requirements: {requirements}
Salary: {salary}

Candidate Skills: {skills}
Experience: {experience}
Location: {candidate_location}

User Preferences:
- Location: {preferred_location}
- Salary: {salary_expectation}
- Job Types: {preferred_job_types}

Analyze compatibility as JSON."""

BATCH_MATCH_SYSTEM_PROMPT = f"""You analyze job-candidate compatibility for several jobs at once.

Return ONLY a JSON object of the form:
{{"results": [<one object per job, in the order given>]}}

Each result object has the field "job_id" (copied from the input) plus:
{MATCH_RESULT_SCHEMA}

Score every job independently. Never skip a job."""

BATCH_MATCH_USER_TEMPLATE = """Candidate Skills: {skills}
Experience: {experience}
Location: {candidate_location}

User Preferences:
- Location: {preferred_location}
- Salary: {salary_expectation}
- Job Types: {preferred_job_types}

Jobs ({job_count}):
{jobs}

Analyze compatibility for each job as JSON."""

BATCH_JOB_TEMPLATE = """[job_id: {job_id}] {title} at {company}
  Location: {job_location} | Type: {job_type} | Salary: {salary}
  Requirements: {requirements}"""
