"""
Global fixtures for all unit tests.

This conftest keeps every test offline and deterministic:
- Environment variable isolation (no real API key, so nothing can reach the
  text-generation API by accident)
- A controllable clock for cache TTL tests
- A no-op sleep that records requested delays (retry backoff, batch delay)
- Scripted fake text-generation clients

These fixtures apply automatically to ALL tests in tests/unit/ where marked
autouse; the rest are requested by name.
"""

import os
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

# Set test environment BEFORE any imports so Config never loads real values
os.environ["OPENAI_API_KEY"] = ""
os.environ["DEBUG_MODE"] = "false"

from career_copilot import api  # noqa: E402
from career_copilot.common.config import Config  # noqa: E402
from career_copilot.common.error_handling import ExternalServiceError  # noqa: E402
from career_copilot.cv_parsing.models import ParsedCv  # noqa: E402
from career_copilot.job_matching.models import Job  # noqa: E402
from career_copilot.job_matching.skills import SkillAliasMap  # noqa: E402


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate tests from real credentials and shared state.

    Config attributes are read at import time, so they are patched directly.
    """
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setattr(Config, "OPENAI_API_KEY", "")
    api.reset_default_service()
    yield
    api.reset_default_service()


# ===== Time =====

class FakeClock:
    """Callable clock whose time only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable no-op sleep that remembers every requested delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


# ===== Text-generation fakes =====

Response = Union[Dict[str, Any], Exception]


class ScriptedClient:
    """
    Fake JsonCompletionClient.

    Either replays `responses` in order (the last one repeats once the
    script runs out) or delegates to `handler(system_prompt, user_prompt)`.
    Exceptions in the script are raised instead of returned.
    """

    def __init__(
        self,
        responses: Optional[List[Response]] = None,
        handler: Optional[Callable[[str, str], Dict[str, Any]]] = None,
        configured: bool = True,
    ):
        self.responses = list(responses or [])
        self.handler = handler
        self.configured = configured
        self.calls: List[Tuple[str, str]] = []

    def is_configured(self) -> bool:
        return self.configured

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete_json(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        self.calls.append((system_prompt, user_prompt))
        if self.handler is not None:
            return self.handler(system_prompt, user_prompt)

        index = min(len(self.calls), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def scripted_client() -> Callable[..., ScriptedClient]:
    """Factory: scripted_client([{...}, ExternalServiceError("boom")])."""
    return ScriptedClient


@pytest.fixture
def failing_client() -> ScriptedClient:
    """Configured client whose every call fails."""
    return ScriptedClient([ExternalServiceError("API unavailable", status_code=503)])


@pytest.fixture
def unconfigured_client() -> ScriptedClient:
    """Client with no API key; services must never call it."""
    return ScriptedClient([AssertionError("unconfigured client was called")], configured=False)


# ===== Domain data =====

@pytest.fixture
def alias_map() -> SkillAliasMap:
    return SkillAliasMap.from_file(Config.SKILL_ALIASES_PATH)


@pytest.fixture
def sample_cv() -> ParsedCv:
    return ParsedCv(
        name="Ada Lovelace",
        email="ada@example.com",
        phone="+44 20 7946 0958",
        skills=["React", "TypeScript", "Python", "Docker"],
        experience="6 years of experience. Developed web platforms and led a frontend team.",
        education="BSc Computer Science, University of London",
        summary="Frontend engineer who likes distributed systems.",
        location="London, UK",
    )


@pytest.fixture
def sample_job() -> Job:
    return Job(
        id="job-1",
        title="Senior Frontend Engineer",
        company="StreamCo",
        location="London",
        type="full-time",
        salary="£70,000 - £90,000",
        description="Build the web player for our live streaming platform.",
        requirements=["react", "node.js"],
    )


@pytest.fixture
def sample_jobs() -> List[Job]:
    return [
        Job(
            id=f"job-{i}",
            title=title,
            company=company,
            location=location,
            type=job_type,
            salary=salary,
            description=f"{title} at {company}.",
            requirements=requirements,
        )
        for i, (title, company, location, job_type, salary, requirements) in enumerate(
            [
                ("Frontend Engineer", "StreamCo", "Remote", "full-time", "$120k", ["react", "typescript"]),
                ("Backend Engineer", "PayFlow", "Berlin", "full-time", "€80,000", ["java", "kafka"]),
                ("Junior Developer", "EduTech", "Paris", "contract", None, ["php"]),
                ("Platform Engineer", "CloudCo", "London", "full-time", "£95,000", ["docker", "k8s"]),
                ("Data Analyst", "Numbers Ltd", "Madrid", "part-time", "40k", ["excel", "tableau"]),
                ("Python Developer", "SnakeWorks", "London, UK", "full-time", "£60,000", ["python", "django"]),
                ("React Native Dev", "AppHouse", "Remote - EU", "contract", "$90,000", ["react", "mobile"]),
                ("Site Reliability Engineer", "UptimeCo", "Dublin", "full-time", None, ["linux", "docker"]),
                ("Graduate Engineer", "BigCorp", "Manchester", "full-time", "£30,000", ["c++"]),
                ("Fullstack Engineer", "StartupX", "London", "full-time", "£75,000", ["react", "node.js", "sql"]),
            ]
        )
    ]
