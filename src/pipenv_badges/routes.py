"""
Route patterns for badge services.

Patterns use ``:name`` placeholders, one path segment each, with two
modifiers: ``:name*`` captures zero or more segments (slashes included),
and ``:name(a|b)?`` is an optional segment limited to the listed values.
A trailing ``.json`` or ``.svg`` format extension is accepted and dropped.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern

PLACEHOLDER_PATTERN = re.compile(
    r"^:(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?:\((?P<choices>[^)]*)\))?(?P<modifier>[*?])?$"
)
SEGMENT = r"[^/]+?"
FORMAT_SUFFIX = r"(?:\.(?P<_format>svg|json))?"


def compile_pattern(base: str, pattern: str) -> Pattern[str]:
    """Build the regular expression matching ``<base>/<pattern>``."""
    parts = [re.escape(segment) for segment in base.strip("/").split("/")]
    regex = "^/?" + "/".join(parts)

    for segment in pattern.strip("/").split("/"):
        match = PLACEHOLDER_PATTERN.match(segment)
        if match is None:
            regex += "/" + re.escape(segment)
            continue

        name = match.group("name")
        choices = match.group("choices")
        modifier = match.group("modifier")
        value = "|".join(re.escape(c) for c in choices.split("|")) if choices else SEGMENT

        if modifier == "*":
            regex += rf"(?:/(?P<{name}>{value}(?:/{value})*))?"
        elif modifier == "?":
            regex += rf"(?:/(?P<{name}>{value}))?"
        else:
            regex += rf"/(?P<{name}>{value})"

    return re.compile(regex + FORMAT_SUFFIX + "$")


@dataclass(frozen=True)
class Route:
    """A service route: fixed base path plus a placeholder pattern."""

    base: str
    pattern: str
    regex: Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "regex", compile_pattern(self.base, self.pattern))

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """Return the captured parameters, omitting absent optional ones."""
        match = self.regex.match(path)
        if match is None:
            return None
        return {
            name: value
            for name, value in match.groupdict().items()
            if value is not None and not name.startswith("_")
        }

    def url(self, **params: Optional[str]) -> str:
        """Build a request path from parameters (absent optionals skipped)."""
        segments = [self.base.strip("/")]
        for segment in self.pattern.strip("/").split("/"):
            match = PLACEHOLDER_PATTERN.match(segment)
            if match is None:
                segments.append(segment)
                continue
            value = params.get(match.group("name"))
            if value:
                segments.append(value)
            elif match.group("modifier") is None:
                raise ValueError(f"missing route parameter: {match.group('name')}")
        return "/".join(segments)
