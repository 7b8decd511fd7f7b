"""
Badge data and formatting helpers.

Badges are serialised in the shields.io "endpoint" format, so they can be
served as JSON and rendered by https://img.shields.io/endpoint.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import BadgeError, InvalidParameter, NotFound

DEFAULT_COLOR = "blue"
ERROR_COLOR = "red"
NEUTRAL_ERROR_COLOR = "lightgrey"

PRE_RELEASE_PATTERN = re.compile(r"(alpha|beta|rc|dev|pre|a\d|b\d)", re.IGNORECASE)
IGNORED_VERSION_PATTERN = re.compile(r"^[^0-9]|[0-9]{4}-[0-9]{2}-[0-9]{2}")


@dataclass(frozen=True)
class BadgeData:
    """A rendered badge: short label, message and color."""

    label: str
    message: str
    color: str = DEFAULT_COLOR
    is_error: bool = False

    def to_endpoint_json(self) -> Dict[str, Any]:
        """Return the shields.io endpoint document for this badge."""
        document = {
            "schemaVersion": 1,
            "label": self.label,
            "message": self.message,
            "color": self.color,
        }
        if self.is_error:
            document["isError"] = True
        return document

    def dumps(self) -> str:
        return json.dumps(self.to_endpoint_json())


def add_v(version: str) -> str:
    """
    Prefix a version with "v" when it looks like a plain version number.

    Versions that already start with "v", or that do not start with a
    digit (branch names, refs, "latest"), or that contain a date, are
    returned unchanged.
    """
    version = str(version)
    if not version or version.startswith("v") or IGNORED_VERSION_PATTERN.search(version):
        return version
    return f"v{version}"


def version_color(version: str) -> str:
    """Orange for pre-releases and 0.x versions, blue otherwise."""
    version = str(version).lstrip("v")
    if version.startswith("0.") or PRE_RELEASE_PATTERN.search(version):
        return "orange"
    return DEFAULT_COLOR


def render_version_badge(
    version: str,
    tag: Optional[str] = None,
    default_label: str = "version",
    prefix_v: bool = True,
) -> BadgeData:
    """
    Render a version badge.

    Args:
        version: Version string to display
        tag: Optional tag or branch; shown as ``<default_label>@<tag>``
        default_label: Label used when no tag is given
        prefix_v: Whether to normalise the message with add_v

    Returns:
        BadgeData: The rendered badge
    """
    label = f"{default_label}@{tag}" if tag else default_label
    message = add_v(version) if prefix_v else str(version)
    return BadgeData(label=label, message=message, color=version_color(version))


def render_error_badge(error: Exception, default_label: str) -> BadgeData:
    """Render a failure the way a badge server shows it."""
    if isinstance(error, (NotFound, InvalidParameter)):
        color = ERROR_COLOR
    else:
        color = NEUTRAL_ERROR_COLOR
    message = error.pretty_message if isinstance(error, BadgeError) else "error"
    return BadgeData(default_label, message, color, is_error=True)
