"""
CV parsing: file text extraction, API parsing with a regex fallback.
"""

from career_copilot.cv_parsing.fallback_parser import parse_cv_fallback
from career_copilot.cv_parsing.file_processor import ProcessedFile, extract_text
from career_copilot.cv_parsing.models import ParsedCv
from career_copilot.cv_parsing.parser import CvParser

__all__ = [
    "CvParser",
    "ParsedCv",
    "ProcessedFile",
    "extract_text",
    "parse_cv_fallback",
]
