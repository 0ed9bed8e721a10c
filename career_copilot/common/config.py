"""
Configuration loader for the Career Co-Pilot matching core.

Loads all settings from environment variables (.env file).
Validates numeric settings and provides type-safe access.
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


DEFAULT_SKILL_ALIASES_PATH = Path(__file__).parent.parent / "data" / "skill_aliases.json"


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class Config:
    """
    Centralized configuration for CV parsing, job matching and ATS scoring.

    All values loaded from environment variables - NO SECRETS IN CODE.
    """

    # ===== Text generation API =====
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT_SECONDS: float = _env_float("OPENAI_TIMEOUT_SECONDS", 60.0)

    # Temperature / token caps per operation
    CV_PARSE_TEMPERATURE: float = _env_float("CV_PARSE_TEMPERATURE", 0.1)
    MATCH_TEMPERATURE: float = _env_float("MATCH_TEMPERATURE", 0.2)
    ATS_TEMPERATURE: float = _env_float("ATS_TEMPERATURE", 0.1)
    CV_PARSE_MAX_TOKENS: int = _env_int("CV_PARSE_MAX_TOKENS", 1000)
    MATCH_MAX_TOKENS: int = _env_int("MATCH_MAX_TOKENS", 1000)
    ATS_MAX_TOKENS: int = _env_int("ATS_MAX_TOKENS", 800)
    COVER_LETTER_TEMPERATURE: float = _env_float("COVER_LETTER_TEMPERATURE", 0.7)
    CV_TAILOR_TEMPERATURE: float = _env_float("CV_TAILOR_TEMPERATURE", 0.3)
    APPLICATION_MAX_TOKENS: int = _env_int("APPLICATION_MAX_TOKENS", 2000)

    # ===== Retry policy =====
    LLM_MAX_RETRIES: int = _env_int("LLM_MAX_RETRIES", 3)
    LLM_RETRY_BASE_SECONDS: float = _env_float("LLM_RETRY_BASE_SECONDS", 1.0)
    LLM_RETRY_JITTER_SECONDS: float = _env_float("LLM_RETRY_JITTER_SECONDS", 1.0)
    LLM_RETRY_MAX_DELAY_SECONDS: float = _env_float("LLM_RETRY_MAX_DELAY_SECONDS", 30.0)

    # ===== Caches =====
    CV_CACHE_TTL_SECONDS: float = _env_float("CV_CACHE_TTL_SECONDS", 24 * 60 * 60)
    CV_CACHE_MAX_ENTRIES: int = _env_int("CV_CACHE_MAX_ENTRIES", 1000)
    CV_CACHE_EVICT_COUNT: int = _env_int("CV_CACHE_EVICT_COUNT", 200)
    CV_CACHE_PREFIX_CHARS: int = _env_int("CV_CACHE_PREFIX_CHARS", 4000)

    # 12h: job market data goes stale faster than a parsed CV
    MATCH_CACHE_TTL_SECONDS: float = _env_float("MATCH_CACHE_TTL_SECONDS", 12 * 60 * 60)
    CACHE_MAX_ENTRIES: int = _env_int("CACHE_MAX_ENTRIES", 2000)
    CACHE_EVICT_COUNT: int = _env_int("CACHE_EVICT_COUNT", 400)

    # ===== Batch matching =====
    MATCH_BATCH_SIZE: int = _env_int("MATCH_BATCH_SIZE", 8)
    MATCH_BATCH_DELAY_SECONDS: float = _env_float("MATCH_BATCH_DELAY_SECONDS", 0.5)

    # ===== Circuit breaker =====
    # Raised to at least one more than a single retry loop makes
    CIRCUIT_FAILURE_THRESHOLD: int = _env_int("CIRCUIT_FAILURE_THRESHOLD", 5)
    CIRCUIT_RECOVERY_SECONDS: float = _env_float("CIRCUIT_RECOVERY_SECONDS", 30.0)

    # ===== Skill aliases =====
    SKILL_ALIASES_PATH: str = os.getenv("SKILL_ALIASES_PATH", str(DEFAULT_SKILL_ALIASES_PATH))

    # ===== Logging =====
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "simple")

    @classmethod
    def validate(cls) -> None:
        """
        Validate that configuration values make sense.
        Raises ValueError / FileNotFoundError on bad settings.
        """
        problems = []
        if cls.LLM_MAX_RETRIES < 0:
            problems.append("LLM_MAX_RETRIES must be >= 0")
        if cls.MATCH_BATCH_SIZE < 1:
            problems.append("MATCH_BATCH_SIZE must be >= 1")
        if cls.CIRCUIT_FAILURE_THRESHOLD < 1:
            problems.append("CIRCUIT_FAILURE_THRESHOLD must be >= 1")
        for name in ("CV_CACHE_TTL_SECONDS", "MATCH_CACHE_TTL_SECONDS", "CIRCUIT_RECOVERY_SECONDS"):
            if getattr(cls, name) <= 0:
                problems.append(f"{name} must be > 0")
        for size_name, evict_name in (
            ("CV_CACHE_MAX_ENTRIES", "CV_CACHE_EVICT_COUNT"),
            ("CACHE_MAX_ENTRIES", "CACHE_EVICT_COUNT"),
        ):
            if getattr(cls, evict_name) < 1 or getattr(cls, evict_name) > getattr(cls, size_name):
                problems.append(f"{evict_name} must be between 1 and {size_name}")

        if problems:
            raise ValueError(
                f"Invalid configuration: {'; '.join(problems)}. "
                f"Please check your .env file."
            )

        if not Path(cls.SKILL_ALIASES_PATH).exists():
            raise FileNotFoundError(
                f"Skill aliases file not found: {cls.SKILL_ALIASES_PATH}"
            )

    @classmethod
    def is_llm_configured(cls) -> bool:
        """True when an API key for the text-generation API is present."""
        return bool(cls.OPENAI_API_KEY)

    @classmethod
    def summary(cls) -> str:
        """Return a summary of the current configuration (safe for logging)."""
        return f"""
Configuration Summary:
  LLM: OpenAI {'✓ Configured' if cls.is_llm_configured() else '✗ Missing (heuristic fallback only)'}
  Model: {cls.DEFAULT_MODEL}
  Retries: {cls.LLM_MAX_RETRIES} (base {cls.LLM_RETRY_BASE_SECONDS}s, jitter {cls.LLM_RETRY_JITTER_SECONDS}s)
  CV cache: ttl={int(cls.CV_CACHE_TTL_SECONDS)}s max={cls.CV_CACHE_MAX_ENTRIES}
  Match cache: ttl={int(cls.MATCH_CACHE_TTL_SECONDS)}s max={cls.CACHE_MAX_ENTRIES}
  Batch: size={cls.MATCH_BATCH_SIZE} delay={cls.MATCH_BATCH_DELAY_SECONDS}s
  Circuit breaker: threshold={cls.CIRCUIT_FAILURE_THRESHOLD} recovery={cls.CIRCUIT_RECOVERY_SECONDS}s
  Skill aliases: {cls.SKILL_ALIASES_PATH}
        """.strip()
