"""
Career Co-Pilot matching core.

CV parsing, job matching and ATS scoring backed by a text-generation API,
each with a deterministic local fallback.
"""

from career_copilot.version import __version__  # noqa: F401
