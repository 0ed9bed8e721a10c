"""
Application Preparer

Writes the documents for one job application:

1. Cover letter (text-generation API at a higher temperature, fixed template fallback)
2. Tailored CV (API at a low temperature, skill-reordering fallback)

prepare_async() runs both concurrently. Every result says which path wrote
it through generated_with, and the Outcome carries the fallback reason.

Usage:
    preparer = ApplicationPreparer()
    outcome = preparer.prepare(parsed_cv, job)
    print(outcome.value.cover_letter.content)
"""

import asyncio
import time
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from career_copilot.application_prep.models import (
    CoverLetter,
    GeneratedWith,
    PreparedApplication,
    TailoredCv,
)
from career_copilot.application_prep.prompts import (
    COVER_LETTER_SYSTEM_PROMPT,
    CV_TAILOR_SYSTEM_PROMPT,
    build_cover_letter_prompt,
    build_tailoring_prompt,
)
from career_copilot.application_prep.templates import (
    cover_letter_from_template,
    tailor_cv_from_template,
)
from career_copilot.common.config import Config
from career_copilot.common.error_handling import InvalidInputError, MalformedResponseError
from career_copilot.common.llm_client import JsonCompletionClient, TextGenerationClient
from career_copilot.common.logger import get_logger
from career_copilot.common.metrics import MatchingMetrics
from career_copilot.common.outcome import Outcome
from career_copilot.common.retrying_caller import (
    NOT_CONFIGURED_REASON,
    RetryingExternalCaller,
    SleepFn,
    build_service_caller,
)
from career_copilot.common.utils import run_async
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.job_matching.models import Job

# Shorter letters are treated as a malformed answer and retried
MIN_COVER_LETTER_WORDS = 50
DEFAULT_APPLICANT_NAME = "Applicant"

CandidateInput = Union[ParsedCv, Dict[str, Any]]
JobInput = Union[Job, Dict[str, Any]]


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


class ApplicationPreparer:
    """Cover letter and CV tailoring for one candidate and one job."""

    def __init__(
        self,
        client: Optional[JsonCompletionClient] = None,
        caller: Optional[RetryingExternalCaller] = None,
        metrics: Optional[MatchingMetrics] = None,
        sleep: Optional[SleepFn] = None,
    ):
        """
        Args:
            client: Used for both documents. When omitted, each document gets
                its own client at its own temperature.
            caller: Retry/fallback policy (defaults to a breaker-guarded caller)
            metrics: Metrics sink
            sleep: Awaitable sleep for retry backoff
        """
        self.metrics = metrics or MatchingMetrics()
        self.cover_letter_client: JsonCompletionClient = client or TextGenerationClient(
            temperature=Config.COVER_LETTER_TEMPERATURE,
            max_tokens=Config.APPLICATION_MAX_TOKENS,
        )
        self.tailoring_client: JsonCompletionClient = client or TextGenerationClient(
            temperature=Config.CV_TAILOR_TEMPERATURE,
            max_tokens=Config.APPLICATION_MAX_TOKENS,
        )
        self.caller = caller or build_service_caller(
            "application_prep", "openai-application", sleep=sleep, metrics=self.metrics
        )
        self._logger = get_logger(__name__, component="application_prep")

    @staticmethod
    def _coerce(candidate: CandidateInput, job: JobInput) -> Tuple[ParsedCv, Job]:
        """
        Raises:
            InvalidInputError: Candidate or job fails validation
        """
        try:
            cv = candidate if isinstance(candidate, ParsedCv) else ParsedCv.model_validate(candidate)
            job_model = job if isinstance(job, Job) else Job.model_validate(job)
        except ValidationError as e:
            error_msgs = [
                f"{' -> '.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            raise InvalidInputError("Invalid application input: " + "; ".join(error_msgs)) from e
        return cv, job_model

    @staticmethod
    def _unavailable_reason(client: JsonCompletionClient) -> Optional[str]:
        return None if client.is_configured() else NOT_CONFIGURED_REASON

    # ===== API calls =====

    async def _write_cover_letter(self, cv: ParsedCv, job: Job, applicant_name: str) -> CoverLetter:
        data = await self.cover_letter_client.complete_json(
            COVER_LETTER_SYSTEM_PROMPT,
            build_cover_letter_prompt(cv, job, applicant_name),
        )
        content = data.get("cover_letter")
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError(
                f"Cover letter response has no text: {str(data)[:200]}"
            )
        letter = CoverLetter(content=content.strip(), generated_with=GeneratedWith.OPENAI)
        if letter.word_count < MIN_COVER_LETTER_WORDS:
            raise MalformedResponseError(
                f"Cover letter too short ({letter.word_count} words)"
            )
        return letter

    async def _tailor_with_llm(self, cv: ParsedCv, job: Job) -> TailoredCv:
        data = await self.tailoring_client.complete_json(
            CV_TAILOR_SYSTEM_PROMPT,
            build_tailoring_prompt(cv, job),
        )
        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError(
                f"Tailored CV response has no content: {str(data)[:200]}"
            )
        return TailoredCv(
            content=content.strip(),
            generated_with=GeneratedWith.OPENAI,
            key_changes=data.get("key_changes"),
        )

    # ===== Documents =====

    async def _cover_letter(
        self,
        cv: ParsedCv,
        job: Job,
        applicant_name: Optional[str],
        applicant_email: Optional[str],
    ) -> Outcome[CoverLetter]:
        started = time.monotonic()
        self.metrics.record_request()
        name = cv.name or applicant_name or DEFAULT_APPLICANT_NAME
        email = cv.email or applicant_email or ""

        outcome = await self.caller.call(
            lambda: self._write_cover_letter(cv, job, name),
            fallback=lambda: cover_letter_from_template(cv, job, name, email),
            operation_name=f"cover_letter[{job.id}]",
            unavailable_reason=self._unavailable_reason(self.cover_letter_client),
        )
        elapsed = _elapsed_ms(started)
        self.metrics.record_response_time(elapsed)
        if outcome.has_value:
            self._logger.info(
                f"Cover letter for {job.company} - {job.title}: "
                f"{outcome.value.word_count} words via {outcome.value.generated_with.value}"
            )
        return outcome.map(lambda letter: letter.model_copy(update={"processing_time_ms": elapsed}))

    async def _tailored_cv(self, cv: ParsedCv, job: Job) -> Outcome[TailoredCv]:
        started = time.monotonic()
        self.metrics.record_request()

        outcome = await self.caller.call(
            lambda: self._tailor_with_llm(cv, job),
            fallback=lambda: tailor_cv_from_template(cv, job),
            operation_name=f"tailor_cv[{job.id}]",
            unavailable_reason=self._unavailable_reason(self.tailoring_client),
        )
        elapsed = _elapsed_ms(started)
        self.metrics.record_response_time(elapsed)
        return outcome.map(lambda tailored: tailored.model_copy(update={"processing_time_ms": elapsed}))

    async def generate_cover_letter_async(
        self,
        candidate: CandidateInput,
        job: JobInput,
        applicant_name: Optional[str] = None,
        applicant_email: Optional[str] = None,
    ) -> Outcome[CoverLetter]:
        """
        Write a cover letter for one job.

        The name and email signed under the letter come from the CV, then
        from applicant_name / applicant_email.

        Returns:
            Outcome.ok (generated_with="openai"), Outcome.degraded with the
            template letter, or Outcome.error for invalid input.
        """
        try:
            cv, job_model = self._coerce(candidate, job)
        except InvalidInputError as e:
            return Outcome.error(str(e))
        return await self._cover_letter(cv, job_model, applicant_name, applicant_email)

    def generate_cover_letter(
        self,
        candidate: CandidateInput,
        job: JobInput,
        applicant_name: Optional[str] = None,
        applicant_email: Optional[str] = None,
    ) -> Outcome[CoverLetter]:
        """Synchronous wrapper for generate_cover_letter_async()."""
        return run_async(
            self.generate_cover_letter_async(candidate, job, applicant_name, applicant_email)
        )

    async def tailor_cv_async(self, candidate: CandidateInput, job: JobInput) -> Outcome[TailoredCv]:
        """
        Rewrite the CV for one job.

        Returns:
            Outcome.ok (generated_with="openai"), Outcome.degraded with the
            skills reordered by the job's requirements, or Outcome.error.
        """
        try:
            cv, job_model = self._coerce(candidate, job)
        except InvalidInputError as e:
            return Outcome.error(str(e))
        return await self._tailored_cv(cv, job_model)

    def tailor_cv(self, candidate: CandidateInput, job: JobInput) -> Outcome[TailoredCv]:
        """Synchronous wrapper for tailor_cv_async()."""
        return run_async(self.tailor_cv_async(candidate, job))

    async def prepare_async(
        self,
        candidate: CandidateInput,
        job: JobInput,
        applicant_name: Optional[str] = None,
        applicant_email: Optional[str] = None,
    ) -> Outcome[PreparedApplication]:
        """
        Cover letter and tailored CV, written concurrently.

        Returns:
            Outcome.ok when the API wrote both documents, Outcome.degraded
            when either came from a template (reasons joined), Outcome.error
            for invalid input.
        """
        try:
            cv, job_model = self._coerce(candidate, job)
        except InvalidInputError as e:
            self._logger.warning(f"Application preparation rejected input: {e}")
            return Outcome.error(str(e))

        self._logger.info(f"Preparing application for {job_model.company} - {job_model.title}")
        letter, tailored = await asyncio.gather(
            self._cover_letter(cv, job_model, applicant_name, applicant_email),
            self._tailored_cv(cv, job_model),
        )
        prepared = PreparedApplication(cover_letter=letter.value, tailored_cv=tailored.value)
        attempts = letter.attempts + tailored.attempts
        if letter.is_ok and tailored.is_ok:
            return Outcome.ok(prepared, attempts=attempts)

        reasons = []
        if letter.is_degraded:
            reasons.append(f"cover letter: {letter.reason}")
        if tailored.is_degraded:
            reasons.append(f"tailored CV: {tailored.reason}")
        return Outcome.degraded(prepared, reason="; ".join(reasons), attempts=attempts)

    def prepare(
        self,
        candidate: CandidateInput,
        job: JobInput,
        applicant_name: Optional[str] = None,
        applicant_email: Optional[str] = None,
    ) -> Outcome[PreparedApplication]:
        """Synchronous wrapper for prepare_async()."""
        return run_async(self.prepare_async(candidate, job, applicant_name, applicant_email))
