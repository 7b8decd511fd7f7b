"""
GitHub Pipenv badge services.

Each service reads Pipfile.lock through an injected RepoFileFetcher and
turns one field of it into a badge. ``render`` is pure so it can build
documentation previews without any network access.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .badges import BadgeData, add_v, render_version_badge
from .errors import NotFound
from .github_client import RepoFileFetcher
from .lockfile import LOCKFILE_NAME, LockfileDocument, get_dependency_version
from .routes import Route

KEYWORDS = ["pipfile"]

DOCUMENTATION = """
<p>
  <a href="https://github.com/pypa/pipenv">Pipenv</a> is a dependency
  manager for Python which manages a
  <a href="https://virtualenv.pypa.io/en/latest/">virtualenv</a> for
  projects. It adds/removes packages from your <code>Pipfile</code> as
  you install/uninstall packages and generates <code>Pipfile.lock</code>,
  which can be checked in to source control to produce deterministic builds.
</p>

<p>
  When <code>Pipfile.lock</code> is checked in, the <strong>GitHub Pipenv
  locked dependency version</strong> badge displays the locked version of
  a dependency listed in <code>[packages]</code> or
  <code>[dev-packages]</code> (or any of their transitive dependencies).
</p>

<p>
  Usually a Python version is specified in the <code>Pipfile</code>, which
  <code>pipenv lock</code> then places in <code>Pipfile.lock</code>. The
  <strong>GitHub Pipenv Python version</strong> badge displays that version.
</p>

<p>
  Private repositories and higher rate limits need a GitHub token in
  <code>GITHUB_TOKEN</code>; without one, files are read anonymously.
</p>
"""


@dataclass(frozen=True)
class Example:
    """Registration data for one documented badge example."""

    title: str
    pattern: str
    named_params: Dict[str, str]
    static_preview: BadgeData
    keywords: List[str] = field(default_factory=list)
    documentation: str = DOCUMENTATION


class PythonVersionBadge:
    """Python version pinned in ``_meta.requires.python_version``."""

    name = "github-pipenv-locked-python-version"
    category = "platform-support"
    route = Route(
        base="github/pipenv/locked/python-version",
        pattern=":user/:repo/:branch*",
    )
    default_badge_data = {"label": "python"}

    def __init__(self, fetcher: RepoFileFetcher):
        self.fetcher = fetcher

    @classmethod
    def examples(cls) -> List[Example]:
        return [
            Example(
                title="GitHub Pipenv locked Python version",
                pattern=":user/:repo",
                named_params={"user": "metabolize", "repo": "rq-dashboard-on-heroku"},
                static_preview=cls.render(version="3.7"),
                keywords=KEYWORDS,
            ),
            Example(
                title="GitHub Pipenv locked Python version (branch)",
                pattern=":user/:repo/:branch",
                named_params={
                    "user": "metabolize",
                    "repo": "rq-dashboard-on-heroku",
                    "branch": "master",
                },
                static_preview=cls.render(version="3.7", branch="master"),
                keywords=KEYWORDS,
            ),
        ]

    @staticmethod
    def render(version: str, branch: Optional[str] = None) -> BadgeData:
        # Python versions are shown as written, never "v"-prefixed.
        return render_version_badge(
            version, tag=branch, default_label="python", prefix_v=False
        )

    async def handle(
        self, user: str, repo: str, branch: Optional[str] = None
    ) -> BadgeData:
        lockfile: LockfileDocument = await self.fetcher.fetch_json_from_repo(
            user, repo, LOCKFILE_NAME, branch=branch, schema=LockfileDocument
        )
        version = lockfile.python_version
        if version is None:
            raise NotFound("version not specified")
        return self.render(version=version, branch=branch)


class DependencyVersionBadge:
    """Locked version, or VCS ref, of a regular or dev dependency."""

    name = "github-pipenv-locked-dependency-version"
    category = "dependencies"
    route = Route(
        base="github/pipenv/locked/dependency-version",
        pattern=":user/:repo/:kind(dev)?/:packageName/:branch*",
    )
    default_badge_data = {"label": "dependency"}

    def __init__(self, fetcher: RepoFileFetcher):
        self.fetcher = fetcher

    @classmethod
    def examples(cls) -> List[Example]:
        return [
            Example(
                title="GitHub Pipenv locked dependency version",
                pattern=":user/:repo/:kind(dev)?/:packageName",
                named_params={
                    "user": "metabolize",
                    "repo": "rq-dashboard-on-heroku",
                    "packageName": "flask",
                },
                static_preview=cls.render(dependency="flask", version="1.1.1"),
                keywords=["python", *KEYWORDS],
            ),
            Example(
                title="GitHub Pipenv locked dependency version (branch)",
                pattern=":user/:repo/:kind(dev)?/:packageName/:branch",
                named_params={
                    "user": "metabolize",
                    "repo": "rq-dashboard-on-heroku",
                    "kind": "dev",
                    "packageName": "black",
                    "branch": "master",
                },
                static_preview=cls.render(dependency="black", version="19.3b0"),
                keywords=["python", *KEYWORDS],
            ),
        ]

    @staticmethod
    def render(
        dependency: str, version: Optional[str] = None, ref: Optional[str] = None
    ) -> BadgeData:
        return BadgeData(
            label=dependency,
            message=add_v(version) if version else ref,
            color="blue",
        )

    async def handle(
        self,
        user: str,
        repo: str,
        package_name: str,
        kind: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> BadgeData:
        lockfile: LockfileDocument = await self.fetcher.fetch_json_from_repo(
            user, repo, LOCKFILE_NAME, branch=branch, schema=LockfileDocument
        )
        locked = get_dependency_version(kind, package_name, lockfile)
        return self.render(
            dependency=package_name, version=locked.version, ref=locked.ref
        )
