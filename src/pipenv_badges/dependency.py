from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DependencyVersion:
    """The locked version of a dependency, or its VCS ref when it has none."""

    version: Optional[str] = None
    ref: Optional[str] = None
