"""Typed failures raised while producing a badge."""

from typing import Optional


class BadgeError(Exception):
    """Base exception for badge failures.

    ``pretty_message`` is the short text shown on the error badge.
    """

    default_message = "error"

    def __init__(
        self,
        pretty_message: Optional[str] = None,
        underlying_error: Optional[Exception] = None,
    ):
        self.pretty_message = pretty_message or self.default_message
        self.underlying_error = underlying_error
        super().__init__(self.pretty_message)


class NotFound(BadgeError):
    """Raised when a repository, file or field does not exist."""

    default_message = "not found"


class InvalidParameter(BadgeError):
    """Raised when a request parameter cannot be satisfied."""

    default_message = "invalid parameter"


class InvalidResponse(BadgeError):
    """Raised when upstream data is undecodable or fails validation."""

    default_message = "invalid"


class Inaccessible(BadgeError):
    """Raised when the upstream service cannot be reached."""

    default_message = "inaccessible"
