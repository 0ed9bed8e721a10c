"""
Logging for the matching core.

Modules log through get_logger(), which tags every record with the service
component and, inside a multi-job run, a request id:

    log = get_logger(__name__, component="job_matcher").with_request(request_id)
    log.info("Matching 12 jobs")
    # 2025-01-01 12:00:00 [INFO] career_copilot.job_matching.matcher: [req:3f2a9c1d] [job_matcher] Matching 12 jobs

The tags travel on the LogRecord (record.component, record.request_id), so the
"json" format emits them as fields of their own instead of a text prefix.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional, TextIO, Tuple

PACKAGE_LOGGER = "career_copilot"
CONTEXT_FIELDS = ("request_id", "component")

_GLOBAL_DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"


def set_global_debug_mode(enabled: bool) -> None:
    """Turn DEBUG records on or off for every career_copilot logger."""
    global _GLOBAL_DEBUG_MODE
    _GLOBAL_DEBUG_MODE = enabled
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if enabled else logging.NOTSET)


def is_debug_mode() -> bool:
    """Check if debug mode is enabled globally."""
    return _GLOBAL_DEBUG_MODE


if _GLOBAL_DEBUG_MODE:
    set_global_debug_mode(True)


class CopilotLogger(logging.LoggerAdapter):
    """Logger adapter that attaches request and component tags to each record."""

    def __init__(
        self,
        logger: logging.Logger,
        component: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(logger, {"component": component, "request_id": request_id})

    @property
    def component(self) -> Optional[str]:
        return self.extra["component"]

    @property
    def request_id(self) -> Optional[str]:
        return self.extra["request_id"]

    def with_request(self, request_id: str) -> "CopilotLogger":
        """Return a copy of this logger bound to another request id."""
        return CopilotLogger(self.logger, component=self.component, request_id=request_id)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        # call-site extra wins over the bound tags
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def context_prefix(record: logging.LogRecord) -> str:
    """'[req:xxxxxxxx] [component]' for a tagged record, '' otherwise."""
    parts = []
    request_id = getattr(record, "request_id", None)
    component = getattr(record, "component", None)
    if request_id:
        parts.append(f"[req:{request_id[:8]}]")
    if component:
        parts.append(f"[{component}]")
    return " ".join(parts)


class ContextFormatter(logging.Formatter):
    """Plain-text format with the context tags in front of the message."""

    def __init__(self):
        super().__init__(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        prefix = context_prefix(record)
        if not prefix:
            return super().formatMessage(record)
        message = record.message
        record.message = f"{prefix} {message}"
        try:
            return super().formatMessage(record)
        finally:
            record.message = message


class JsonFormatter(logging.Formatter):
    """One JSON object per record; context tags only when set."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    level: str = "INFO",
    format: str = "simple",
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format ("simple" or "json")
        stream: Where records go (defaults to stdout)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JsonFormatter() if format == "json" else ContextFormatter())

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(
    name: str,
    component: Optional[str] = None,
    request_id: Optional[str] = None,
) -> CopilotLogger:
    """Tagged logger for `name` (usually __name__)."""
    return CopilotLogger(logging.getLogger(name), component=component, request_id=request_id)
