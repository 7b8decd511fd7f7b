"""Shared fixtures for pipenv-badges tests."""

import json
from typing import Any, List, Optional, Type

import pytest
from pydantic import BaseModel

from pipenv_badges.cli_config import reset_config
from pipenv_badges.error_handling import setup_error_handling
from pipenv_badges.lockfile import validate_document


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from real config files, tokens and cached config."""
    for var in (
        "GITHUB_TOKEN",
        "PIPENV_BADGES_GITHUB_TOKEN",
        "PIPENV_BADGES_GITHUB_API_URL",
        "PIPENV_BADGES_GITHUB_RAW_URL",
        "PIPENV_BADGES_OUTPUT_FORMAT",
        "PIPENV_BADGES_QUIET",
        "PIPENV_BADGES_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    reset_config()
    setup_error_handling()
    yield
    reset_config()


@pytest.fixture
def lockfile_data():
    """A realistic Pipfile.lock with regular, dev, transitive and VCS entries."""
    return {
        "_meta": {
            "hash": {"sha256": "example"},
            "pipfile-spec": 6,
            "requires": {"python_version": "3.7"},
            "sources": [
                {"name": "pypi", "url": "https://pypi.org/simple", "verify_ssl": True}
            ],
        },
        "default": {
            "flask": {
                "hashes": ["sha256:4efa1ae2d7c9865af48986de8aeb8504bf32c7f3d6fdc9353d34b21f4b127060"],
                "index": "pypi",
                "version": "==1.1.1",
            },
            "werkzeug": {"version": "==0.16.0"},
            "rq-dashboard": {
                "git": "https://github.com/Parallels/rq-dashboard.git",
                "ref": "5c1e3bd8d1a6e5b8e0d7f5d1cbb3b87c0d7e9f4a",
            },
        },
        "develop": {
            "black": {"version": "==19.3b0"},
            "pytest": {"version": "==5.2.1", "markers": "python_version >= '3.5'"},
        },
    }


@pytest.fixture
def lockfile_path(tmp_path, lockfile_data):
    path = tmp_path / "Pipfile.lock"
    path.write_text(json.dumps(lockfile_data, indent=2))
    return path


class FakeFetcher:
    """In-memory RepoFileFetcher that records every request."""

    def __init__(self, data: Any = None, error: Optional[Exception] = None):
        self.data = data
        self.error = error
        self.calls: List[dict] = []

    async def fetch_json_from_repo(
        self,
        user: str,
        repo: str,
        filename: str,
        branch: Optional[str] = None,
        schema: Optional[Type[BaseModel]] = None,
    ) -> Any:
        self.calls.append(
            {"user": user, "repo": repo, "filename": filename, "branch": branch}
        )
        if self.error is not None:
            raise self.error
        if schema is None:
            return self.data
        return validate_document(self.data, schema)


@pytest.fixture
def fake_fetcher(lockfile_data):
    return FakeFetcher(lockfile_data)
