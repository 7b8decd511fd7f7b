"""
Error handling for pipenv-badges.

Records badge failures with structured, sanitised logging and error
callbacks. The typed failures themselves live in ``errors`` and are always
re-raised by callers; this module only reports them.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    FETCH = "FETCH"
    VALIDATION = "VALIDATION"
    LOOKUP = "LOOKUP"
    CREDENTIAL = "CREDENTIAL"
    CONFIGURATION = "CONFIGURATION"
    FILESYSTEM = "FILESYSTEM"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)


SENSITIVE_PATTERNS = [
    (r'token["\s]*[:=]["\s]*([a-zA-Z0-9_\-+=/.]{8,})', 'token="[REDACTED]"'),
    (r"\b(ghp|gho|ghu|ghs|ghr|github_pat)_[A-Za-z0-9_]{8,}", "[REDACTED]"),
    (r"(https?://[^@\s]+:)[^@\s]+@", r"\1[REDACTED]@"),
    (r"Authorization:\s*\w+\s+([^\s]+)", "Authorization: [REDACTED]"),
]


class SecureLogger:
    """Logger that sanitizes tokens and credentialed URLs."""

    def __init__(self, name: str, level: int = logging.WARNING, mask: bool = True):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.mask = mask

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def _sanitize_message(self, message: str) -> str:
        if not self.mask:
            return message

        sanitized = message
        for pattern, replacement in SENSITIVE_PATTERNS:
            sanitized = re.sub(pattern, replacement, sanitized, flags=re.IGNORECASE)
        return sanitized

    def _sanitize_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize dictionary values to remove sensitive info."""
        sanitized = {}
        sensitive_keys = {"token", "password", "secret", "credential", "auth"}

        for key, value in data.items():
            if self.mask and any(s in key.lower() for s in sensitive_keys):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, dict):
                sanitized[key] = self._sanitize_dict(value)
            elif isinstance(value, str):
                sanitized[key] = self._sanitize_message(value)
            else:
                sanitized[key] = value

        return sanitized

    def log_error_context(self, context: ErrorContext):
        """Log error context with appropriate level."""
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": self._sanitize_dict(context.details),
        }

        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        if context.suggestions:
            log_data["suggestions"] = context.suggestions

        log_message = f"{self._sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), log_message)


# Error callback type
ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized error handler for consistent error reporting.

    Provides logging, callbacks and per-category statistics.
    """

    def __init__(
        self,
        logger_name: str = "pipenv_badges",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
        mask_sensitive: bool = True,
    ):
        self.logger = SecureLogger(logger_name, log_level, mask_sensitive)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ):
        """
        Register error callback.

        Args:
            callback: Function to call on errors
            category: Error category to filter, None for all errors
        """
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ) -> ErrorContext:
        """
        Record an error with structured logging and callbacks.

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=traceback.format_exc() if exception else None,
            suggestions=suggestions or [],
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            callbacks = self.error_callbacks.get(category, []) + self.global_callbacks
            for callback in callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def warning(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle warning level error."""
        return self.handle_error(
            ErrorLevel.WARNING, category, message, module, function, **kwargs
        )

    def error(
        self, category: ErrorCategory, message: str, module: str, function: str, **kwargs
    ) -> ErrorContext:
        """Handle error level error."""
        return self.handle_error(
            ErrorLevel.ERROR, category, message, module, function, **kwargs
        )

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()

    def reset_stats(self):
        """Reset error statistics."""
        self.error_stats.clear()


# Global error handler instance
_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    mask_sensitive: bool = True,
    logger_name: str = "pipenv_badges",
) -> ErrorHandler:
    """Replace the global error handler with a newly configured one."""
    global _global_error_handler
    _global_error_handler = ErrorHandler(
        logger_name, log_level, enable_callbacks, mask_sensitive
    )
    return _global_error_handler


def sanitize_url(url: str) -> str:
    """Drop credentials and query string from a URL before logging it."""
    parsed = urlparse(url)
    sanitized_url = f"{parsed.scheme}://{parsed.hostname}"
    if parsed.port:
        sanitized_url += f":{parsed.port}"
    return sanitized_url + parsed.path


def log_network_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None,
    exception: Optional[Exception] = None,
):
    """
    Convenience function for logging fetch errors.

    Args:
        message: Error message
        module: Module name
        function: Function name
        url: URL that failed (will be sanitized)
        status_code: HTTP status code
        exception: Optional exception
    """
    details: Dict[str, Any] = {}
    if url is not None:
        details["url"] = sanitize_url(url)
    if status_code is not None:
        details["status_code"] = status_code

    suggestions = [
        "Check that the repository and branch exist",
        "Check that Pipfile.lock is committed",
    ]
    if status_code in (401, 403):
        suggestions.append("Set GITHUB_TOKEN to avoid anonymous rate limits")

    get_error_handler().error(
        ErrorCategory.FETCH,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=suggestions,
    )


def log_credential_error(
    message: str,
    module: str,
    function: str,
    credential_type: Optional[str] = None,
    exception: Optional[Exception] = None,
):
    """Convenience function for logging credential errors."""
    details = {}
    if credential_type is not None:
        details["credential_type"] = credential_type

    get_error_handler().warning(
        ErrorCategory.CREDENTIAL,
        message,
        module,
        function,
        details=details,
        exception=exception,
        suggestions=[
            "Verify the GitHub token is valid and not expired",
            "Ensure the token is properly formatted",
        ],
    )
