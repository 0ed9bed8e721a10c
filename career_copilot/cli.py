"""
Command-line entry point.

Usage:
    career-copilot parse cv.pdf
    career-copilot match cv.docx jobs.json --top 10 --location London
    career-copilot ats job_description.txt cv.pdf
    career-copilot prepare cv.pdf job.json --name "Ada Lovelace"

Every command prints the Outcome as JSON. Exit code 0 means a value was
produced (from the API or a local fallback), 1 means the input was rejected.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from career_copilot.api import get_default_service
from career_copilot.common.config import Config
from career_copilot.common.error_handling import CopilotError
from career_copilot.common.logger import get_logger, set_global_debug_mode, setup_logging
from career_copilot.common.outcome import Outcome
from career_copilot.cv_parsing.file_processor import extract_text
from career_copilot.job_matching.models import MatchPreferences
from career_copilot.version import __version__

logger = get_logger(__name__, component="cli")

BINARY_CV_SUFFIXES = (".pdf", ".docx", ".doc")


def read_cv_text(path: Path) -> str:
    """Text of a CV file: PDF/DOCX are extracted, anything else read as UTF-8."""
    if path.suffix.lower() in BINARY_CV_SUFFIXES:
        return extract_text(path.read_bytes(), path.name).text
    return path.read_text(encoding="utf-8")


def load_jobs(path: Path) -> list:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("jobs", [])
    if not isinstance(data, list):
        raise ValueError(f"Jobs file must contain a JSON list: {path}")
    return data


def load_job(path: Path) -> dict:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Job file must contain a JSON object: {path}")
    return data


def _print_outcome(outcome: Outcome) -> int:
    print(json.dumps(outcome.to_dict(), indent=2, default=str))
    return 1 if outcome.is_error else 0


def cmd_parse(args: argparse.Namespace) -> int:
    service = get_default_service()
    return _print_outcome(service.parse(read_cv_text(Path(args.cv))))


def cmd_match(args: argparse.Namespace) -> int:
    service = get_default_service()
    parsed = service.parse(read_cv_text(Path(args.cv)))
    if parsed.is_error:
        return _print_outcome(parsed)
    if parsed.is_degraded:
        logger.warning(f"CV parsed by the local fallback: {parsed.reason}")

    jobs = load_jobs(Path(args.jobs))
    preferences = MatchPreferences(
        preferred_location=args.location,
        preferred_job_types=args.job_type or [],
        user_id=args.user_id,
    )
    if args.top:
        outcome = service.matcher.top_matches(parsed.value, jobs, args.top, preferences)
    else:
        outcome = service.match_jobs(parsed.value, jobs, preferences)
    return _print_outcome(outcome)


def cmd_ats(args: argparse.Namespace) -> int:
    service = get_default_service()
    job_description = Path(args.job_description).read_text(encoding="utf-8")
    return _print_outcome(service.ats_score(job_description, read_cv_text(Path(args.cv))))


def cmd_prepare(args: argparse.Namespace) -> int:
    service = get_default_service()
    parsed = service.parse(read_cv_text(Path(args.cv)))
    if parsed.is_error:
        return _print_outcome(parsed)

    job = load_job(Path(args.job))
    return _print_outcome(
        service.prepare_application(parsed.value, job, args.name, args.email)
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="career-copilot",
        description="Parse CVs, match jobs, score ATS coverage and prepare applications",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse a CV into structured fields")
    parse_cmd.add_argument("cv", help="CV file (.pdf, .docx or plain text)")
    parse_cmd.set_defaults(func=cmd_parse)

    match_cmd = subparsers.add_parser("match", help="Match a CV against a JSON list of jobs")
    match_cmd.add_argument("cv", help="CV file (.pdf, .docx or plain text)")
    match_cmd.add_argument("jobs", help="JSON file with a list of jobs (or {\"jobs\": [...]})")
    match_cmd.add_argument("--top", type=int, default=None,
                           help="Pre-filter and return only the best N matches")
    match_cmd.add_argument("--location", default=None, help="Preferred location")
    match_cmd.add_argument("--job-type", action="append",
                           help="Preferred job type (repeatable)")
    match_cmd.add_argument("--user-id", default=None, help="Apply this user's personalization")
    match_cmd.set_defaults(func=cmd_match)

    ats_cmd = subparsers.add_parser("ats", help="Score ATS keyword coverage of a CV")
    ats_cmd.add_argument("job_description", help="Text file with the job description")
    ats_cmd.add_argument("cv", help="CV file (.pdf, .docx or plain text)")
    ats_cmd.set_defaults(func=cmd_ats)

    prepare_cmd = subparsers.add_parser(
        "prepare", help="Write a cover letter and a tailored CV for one job"
    )
    prepare_cmd.add_argument("cv", help="CV file (.pdf, .docx or plain text)")
    prepare_cmd.add_argument("job", help="JSON file with one job")
    prepare_cmd.add_argument("--name", default=None,
                             help="Name to sign with when the CV has none")
    prepare_cmd.add_argument("--email", default=None,
                             help="Email to sign with when the CV has none")
    prepare_cmd.set_defaults(func=cmd_prepare)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    level = "DEBUG" if args.debug else Config.LOG_LEVEL
    if args.debug:
        set_global_debug_mode(True)
    # stdout carries the JSON result
    setup_logging(level=level, format=Config.LOG_FORMAT, stream=sys.stderr)

    try:
        return args.func(args)
    except FileNotFoundError as e:
        print(f"File not found: {e}", file=sys.stderr)
    except (CopilotError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
