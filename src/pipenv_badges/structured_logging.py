"""
Structured logging configuration for pipenv-badges.

Emits one machine-readable JSON line per fetch and per rendered badge.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for badge events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"pipenv_badges.{name}")
        self.request_context: Dict[str, Any] = {}

    def setup(self, level: int, enable_json: bool) -> None:
        """Attach a stderr handler with structured or plain formatting."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stderr)
        if enable_json:
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        self.logger.addHandler(handler)
        self.logger.setLevel(level)
        self.logger.propagate = False

    def set_request_context(
        self,
        service: Optional[str] = None,
        user: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> None:
        self.request_context = {}
        if service:
            self.request_context["service"] = service
        if user:
            self.request_context["user"] = user
        if repo:
            self.request_context["repo"] = repo
        if branch:
            self.request_context["branch"] = branch

    def clear_request_context(self) -> None:
        self.request_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.request_context, **kwargs}
        getattr(self.logger, level)(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log("debug", event_type, **kwargs)


# Global logger instances
_fetch_logger = EventLogger("fetch")
_badge_logger = EventLogger("badge")


def log_fetch(
    user: str,
    repo: str,
    filename: str,
    branch: str,
    authenticated: bool,
    status_code: Optional[int] = None,
    response_time_ms: Optional[float] = None,
) -> None:
    """Log a repository file fetch."""
    log_data: Dict[str, Any] = {
        "user": user,
        "repo": repo,
        "repo_file": filename,
        "branch": branch,
        "authenticated": authenticated,
    }
    if status_code is not None:
        log_data["status_code"] = status_code
    if response_time_ms is not None:
        log_data["response_time_ms"] = response_time_ms

    if status_code is not None and status_code >= 400:
        _fetch_logger.warning("repo_file_fetch_failed", **log_data)
    else:
        _fetch_logger.debug("repo_file_fetched", **log_data)


def log_badge_rendered(service: str, label: str, message: str, color: str) -> None:
    """Log a successfully rendered badge."""
    _badge_logger.info(
        "badge_rendered", service=service, label=label, badge_message=message, color=color
    )


def log_badge_failed(service: str, error: Exception) -> None:
    """Log a badge that ended in an error response."""
    _badge_logger.warning(
        "badge_failed",
        service=service,
        error_type=type(error).__name__,
        error_message=str(error),
    )


def set_request_context(
    service: Optional[str] = None,
    user: Optional[str] = None,
    repo: Optional[str] = None,
    branch: Optional[str] = None,
) -> None:
    """Set request context for all loggers."""
    for logger in (_fetch_logger, _badge_logger):
        logger.set_request_context(service, user, repo, branch)


def clear_request_context() -> None:
    """Clear request context for all loggers."""
    for logger in (_fetch_logger, _badge_logger):
        logger.clear_request_context()


def configure_logging(log_level: str = "WARNING", enable_json: bool = True) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    for logger in (_fetch_logger, _badge_logger):
        logger.setup(level, enable_json)
