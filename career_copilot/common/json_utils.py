"""
JSON utilities for LLM response parsing.

JSON mode usually gives clean objects, but models still occasionally wrap the
answer in a code fence, add a sentence around it, or emit trailing commas.
Standard json.loads() is tried first; json-repair handles the rest.
"""

import json
import re
from typing import Any, Dict

from json_repair import repair_json

from career_copilot.common.error_handling import MalformedResponseError

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Parse a single JSON object out of raw LLM output.

    Args:
        text: Raw response content

    Returns:
        Parsed dictionary

    Raises:
        MalformedResponseError: Empty input, no object found, or not repairable.
            Callers treat this as one failed attempt.

    Example:
        >>> parse_json_object('```json\\n{"skills": ["python"]}\\n```')
        {'skills': ['python']}
        >>> parse_json_object("{'name': 'Ada',}")
        {'name': 'Ada'}
    """
    if not text or not text.strip():
        raise MalformedResponseError("Empty response from text-generation API")

    candidate = _extract_object(_FENCE_RE.sub("", text.strip()))

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        parsed = repair_json(candidate, return_objects=True)

    if isinstance(parsed, list):
        # Some models wrap the object in brackets: [{...}]
        dicts = [item for item in parsed if isinstance(item, dict)]
        if not dicts:
            raise MalformedResponseError(f"Expected a JSON object, got a list: {text[:200]}")
        merged: Dict[str, Any] = {}
        for item in dicts:
            merged.update(item)
        parsed = merged

    if not isinstance(parsed, dict) or not parsed:
        raise MalformedResponseError(f"Could not parse JSON object from response: {text[:200]}")

    return parsed


def _extract_object(text: str) -> str:
    """Return the outermost {...} span, or the text unchanged if it already is one."""
    if text.startswith("{"):
        return text
    match = _OBJECT_RE.search(text)
    if match:
        return match.group(0)
    raise MalformedResponseError(f"No JSON object found in response: {text[:200]}")


def canonical_json(data: Any) -> str:
    """Stable JSON encoding (sorted keys, no whitespace) used for cache keys."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
