"""
Pipfile.lock schema and dependency lookup.

The lockfile is validated once, when it is fetched, into pydantic models;
everything downstream reads typed optional fields.
"""

import json
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .cli_config import get_config
from .dependency import DependencyVersion
from .error_handling import ErrorCategory, get_error_handler
from .errors import InvalidParameter, InvalidResponse, NotFound

LOCKFILE_NAME = "Pipfile.lock"

_NORMALIZE_PATTERN = re.compile(r"[-_.]+")

ModelT = TypeVar("ModelT", bound=BaseModel)


class LockfileRequires(BaseModel):
    model_config = ConfigDict(extra="ignore")

    python_version: Optional[str] = None
    python_full_version: Optional[str] = None


class LockfileMeta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    requires: LockfileRequires


class LockedDependency(BaseModel):
    """A locked package: pinned by version, or by VCS ref."""

    model_config = ConfigDict(extra="ignore")

    version: Optional[str] = Field(default=None, min_length=1)
    ref: Optional[str] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _require_version_or_ref(self) -> "LockedDependency":
        if self.version is None and self.ref is None:
            raise ValueError("dependency needs a version or a ref")
        return self


class LockfileDocument(BaseModel):
    """The parts of Pipfile.lock that badges read."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    meta: LockfileMeta = Field(alias="_meta")
    default: Dict[str, LockedDependency] = Field(default_factory=dict)
    develop: Dict[str, LockedDependency] = Field(default_factory=dict)

    @property
    def python_version(self) -> Optional[str]:
        return self.meta.requires.python_version


class DependencyKind(Enum):
    """Lockfile section to search; "dev" selects [dev-packages]."""

    DEFAULT = "default"
    DEV = "dev"

    @classmethod
    def from_route(cls, kind: Optional[str]) -> "DependencyKind":
        if kind is None or kind == "":
            return cls.DEFAULT
        if kind == "dev":
            return cls.DEV
        raise InvalidParameter(f"unknown dependency kind: {kind}")

    def section(self, lockfile: LockfileDocument) -> Dict[str, LockedDependency]:
        return lockfile.develop if self is DependencyKind.DEV else lockfile.default


def normalize_name(name: str) -> str:
    """PEP 503 name normalisation."""
    return _NORMALIZE_PATTERN.sub("-", name).lower()


def validate_document(data: Any, schema: Type[ModelT]) -> ModelT:
    """
    Validate decoded JSON against a pydantic schema.

    Raises:
        InvalidResponse: If the document does not match the schema
    """
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        get_error_handler().warning(
            ErrorCategory.VALIDATION,
            f"Response failed {schema.__name__} validation",
            "lockfile",
            "validate_document",
            exception=e,
            details={"error_count": e.error_count()},
        )
        raise InvalidResponse("invalid response data", underlying_error=e) from e


def parse_lockfile(data: Any) -> LockfileDocument:
    """Validate decoded lockfile JSON."""
    return validate_document(data, LockfileDocument)


def get_dependency_version(
    kind: Optional[str],
    wanted_dependency: str,
    lockfile: LockfileDocument,
) -> DependencyVersion:
    """
    Find the locked version of a dependency.

    Both lockfile sections hold the full resolved graph, so transitive
    dependencies are found as well as direct ones.

    Args:
        kind: None for regular dependencies, "dev" for dev dependencies
        wanted_dependency: Package name as written in the request
        lockfile: Validated lockfile

    Returns:
        DependencyVersion: version with the "==" stripped, or the VCS ref

    Raises:
        InvalidParameter: If the dependency is not in the selected section
    """
    dependency_kind = DependencyKind.from_route(kind)
    dependencies = dependency_kind.section(lockfile)

    entry = dependencies.get(wanted_dependency)
    if entry is None:
        wanted = normalize_name(wanted_dependency)
        for name, candidate in dependencies.items():
            if normalize_name(name) == wanted:
                entry = candidate
                break

    if entry is None:
        raise InvalidParameter(f"{dependency_kind.value} dependency not found")

    version = entry.version.replace("==", "", 1).strip() if entry.version else ""
    if version:
        return DependencyVersion(version=version)
    if entry.ref:
        return DependencyVersion(ref=entry.ref)
    raise InvalidResponse("invalid response data")


def _validate_lockfile_path(file_path: str) -> Path:
    """Check a local lockfile path before reading it."""
    if not file_path or not isinstance(file_path, str):
        raise ValueError("File path must be a non-empty string")

    path = Path(file_path).resolve()

    if not path.exists():
        raise NotFound(f"{LOCKFILE_NAME} missing")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    config = get_config()
    if path.name not in config.security.allowed_lockfile_names:
        raise ValueError(f"File must be named {LOCKFILE_NAME}")

    file_size = path.stat().st_size
    if file_size > config.security.max_file_size_bytes:
        raise ValueError(
            f"File too large: {file_size} bytes "
            f"(max: {config.security.max_file_size_bytes})"
        )

    return path


def read_lockfile_json(file_path: str) -> Any:
    """
    Read a local Pipfile.lock and decode its JSON.

    Raises:
        NotFound: If the file does not exist
        InvalidResponse: If the file is not valid lockfile JSON
        ValueError: If the path is not an acceptable lockfile path
    """
    path = _validate_lockfile_path(file_path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        get_error_handler().warning(
            ErrorCategory.FILESYSTEM,
            f"Invalid JSON format in {LOCKFILE_NAME}: {e}",
            "lockfile",
            "read_lockfile_json",
            exception=e,
            details={"file_path": path.name},
        )
        raise InvalidResponse("unparseable json response", underlying_error=e) from e

    return data


def load_lockfile(file_path: str) -> LockfileDocument:
    """Read and validate a local Pipfile.lock."""
    return parse_lockfile(read_lockfile_json(file_path))
