"""
Integration tests for pipenv-badges.
Tests the GitHub fetcher against a mocked transport and end-to-end dispatch.
"""

import base64
import json

import httpx
import pytest

from conftest import FakeFetcher
from pipenv_badges.badges import BadgeData
from pipenv_badges.cli_config import ComprehensiveConfig
from pipenv_badges.dispatch import handle_request, invoke, resolve_route
from pipenv_badges.error_handling import ErrorCategory, get_error_handler
from pipenv_badges.errors import Inaccessible, InvalidResponse, NotFound
from pipenv_badges.github_client import (
    GitHubContentFetcher,
    LocalFileFetcher,
    resolve_github_token,
)
from pipenv_badges.lockfile import LockfileDocument
from pipenv_badges.services import DependencyVersionBadge, PythonVersionBadge

TOKEN = "ghp_exampletoken1234567890"


def make_config(token=None) -> ComprehensiveConfig:
    config = ComprehensiveConfig()
    config.github.token = token
    return config


def contents_body(data) -> str:
    encoded = base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")
    # The contents API wraps base64 content at 60 characters.
    wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
    return json.dumps({"content": wrapped, "encoding": "base64"})


class RecordingTransport:
    """Builds an httpx.MockTransport and keeps the requests it served."""

    def __init__(self, status_code=200, text="", headers=None, error=None):
        self.status_code = status_code
        self.text = text
        self.headers = headers or {}
        self.error = error
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.text, headers=self.headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


async def fetch_lockfile(recorder, token=None, branch=None):
    fetcher = GitHubContentFetcher(make_config(token), transport=recorder.transport)
    async with fetcher:
        return await fetcher.fetch_json_from_repo(
            "metabolize",
            "rq-dashboard-on-heroku",
            "Pipfile.lock",
            branch=branch,
            schema=LockfileDocument,
        )


class TestAnonymousFetch:
    """Without a token, files come from raw.githubusercontent.com."""

    @pytest.mark.asyncio
    async def test_raw_download(self, lockfile_data):
        recorder = RecordingTransport(text=json.dumps(lockfile_data))
        lockfile = await fetch_lockfile(recorder)

        assert lockfile.python_version == "3.7"
        request = recorder.requests[0]
        assert str(request.url) == (
            "https://raw.githubusercontent.com/metabolize/rq-dashboard-on-heroku/HEAD/Pipfile.lock"
        )
        assert "authorization" not in request.headers
        assert request.headers["user-agent"] == "pipenv-badges/1.0.0"

    @pytest.mark.asyncio
    async def test_branch_with_slash(self, lockfile_data):
        recorder = RecordingTransport(text=json.dumps(lockfile_data))
        await fetch_lockfile(recorder, branch="release/1.0")

        assert recorder.requests[0].url.path == (
            "/metabolize/rq-dashboard-on-heroku/release/1.0/Pipfile.lock"
        )

    @pytest.mark.asyncio
    async def test_without_schema_returns_raw_json(self, lockfile_data):
        recorder = RecordingTransport(text=json.dumps(lockfile_data))
        fetcher = GitHubContentFetcher(make_config(), transport=recorder.transport)
        async with fetcher:
            data = await fetcher.fetch_json_from_repo("u", "r", "Pipfile.lock")

        assert data == lockfile_data


class TestAuthenticatedFetch:
    """With a token, files come from the contents API."""

    @pytest.mark.asyncio
    async def test_contents_api(self, lockfile_data):
        recorder = RecordingTransport(text=contents_body(lockfile_data))
        lockfile = await fetch_lockfile(recorder, token=TOKEN, branch="master")

        assert lockfile.develop["black"].version == "==19.3b0"
        request = recorder.requests[0]
        assert request.url.host == "api.github.com"
        assert request.url.path == "/repos/metabolize/rq-dashboard-on-heroku/contents/Pipfile.lock"
        assert request.url.params["ref"] == "master"
        assert request.headers["authorization"] == f"Bearer {TOKEN}"
        assert request.headers["accept"] == "application/vnd.github.v3+json"

    @pytest.mark.asyncio
    async def test_default_ref(self, lockfile_data):
        recorder = RecordingTransport(text=contents_body(lockfile_data))
        await fetch_lockfile(recorder, token=TOKEN)

        assert recorder.requests[0].url.params["ref"] == "HEAD"

    @pytest.mark.asyncio
    async def test_undecodable_content(self):
        body = json.dumps({"content": base64.b64encode(b"\xff\xfe\xfd").decode()})
        recorder = RecordingTransport(text=body)

        with pytest.raises(InvalidResponse) as exc_info:
            await fetch_lockfile(recorder, token=TOKEN)
        assert exc_info.value.pretty_message == "undecodable content"

    @pytest.mark.asyncio
    async def test_contents_response_without_content(self):
        recorder = RecordingTransport(text=json.dumps({"message": "a directory"}))

        with pytest.raises(InvalidResponse) as exc_info:
            await fetch_lockfile(recorder, token=TOKEN)
        assert exc_info.value.pretty_message == "invalid response data"

    def test_malformed_token_falls_back_to_anonymous(self):
        assert resolve_github_token(make_config("bad token!")) is None
        assert resolve_github_token(make_config("short")) is None
        assert resolve_github_token(make_config(TOKEN)) == TOKEN
        assert resolve_github_token(make_config()) is None

        fetcher = GitHubContentFetcher(make_config("bad token!"))
        assert fetcher.authenticated is False
        assert "Authorization" not in fetcher._headers


class TestFetchFailures:
    """Upstream failures map onto typed badge errors."""

    @pytest.mark.asyncio
    async def test_renamed_repository_redirect_is_followed(self, lockfile_data):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.startswith("/u/old/"):
                return httpx.Response(
                    301,
                    headers={
                        "Location": "https://raw.githubusercontent.com/u/new/HEAD/Pipfile.lock"
                    },
                )
            return httpx.Response(200, text=json.dumps(lockfile_data))

        fetcher = GitHubContentFetcher(
            make_config(), transport=httpx.MockTransport(handler)
        )
        async with fetcher:
            lockfile = await fetcher.fetch_json_from_repo(
                "u", "old", "Pipfile.lock", schema=LockfileDocument
            )

        assert lockfile.python_version == "3.7"
        assert [r.url.path for r in requests] == [
            "/u/old/HEAD/Pipfile.lock",
            "/u/new/HEAD/Pipfile.lock",
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [204, 302, 304])
    async def test_non_success_status_is_invalid(self, status_code):
        recorder = RecordingTransport(status_code=status_code)

        with pytest.raises(InvalidResponse) as exc_info:
            await fetch_lockfile(recorder)
        assert exc_info.value.pretty_message == "invalid"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [404, 422])
    async def test_not_found(self, status_code):
        recorder = RecordingTransport(status_code=status_code, text="Not Found")

        with pytest.raises(NotFound) as exc_info:
            await fetch_lockfile(recorder, token=TOKEN)
        assert exc_info.value.pretty_message == (
            "repo not found, branch not found, or Pipfile.lock missing"
        )

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        recorder = RecordingTransport(
            status_code=403, headers={"x-ratelimit-remaining": "0"}
        )

        with pytest.raises(InvalidResponse) as exc_info:
            await fetch_lockfile(recorder, token=TOKEN)
        assert exc_info.value.pretty_message == "rate limited by upstream service"

    @pytest.mark.asyncio
    async def test_auth_required(self):
        recorder = RecordingTransport(status_code=401)

        with pytest.raises(InvalidResponse) as exc_info:
            await fetch_lockfile(recorder, token=TOKEN)
        assert exc_info.value.pretty_message == "auth required"

    @pytest.mark.asyncio
    async def test_server_error(self):
        recorder = RecordingTransport(status_code=502)

        with pytest.raises(Inaccessible):
            await fetch_lockfile(recorder)

    @pytest.mark.asyncio
    async def test_network_error(self):
        recorder = RecordingTransport(error=httpx.ConnectError("connection refused"))

        with pytest.raises(Inaccessible) as exc_info:
            await fetch_lockfile(recorder)
        assert isinstance(exc_info.value.underlying_error, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_unparseable_json(self):
        recorder = RecordingTransport(text="<html>not json</html>")

        with pytest.raises(InvalidResponse) as exc_info:
            await fetch_lockfile(recorder)
        assert exc_info.value.pretty_message == "unparseable json response"

    @pytest.mark.asyncio
    async def test_schema_invalid(self):
        recorder = RecordingTransport(text=json.dumps({"default": {}}))

        with pytest.raises(InvalidResponse) as exc_info:
            await fetch_lockfile(recorder)
        assert exc_info.value.pretty_message == "invalid response data"

    @pytest.mark.asyncio
    async def test_client_required(self):
        fetcher = GitHubContentFetcher(make_config())

        with pytest.raises(RuntimeError):
            await fetcher.fetch_json_from_repo("u", "r", "Pipfile.lock")

    @pytest.mark.asyncio
    async def test_failures_are_recorded(self):
        handler = get_error_handler()
        handler.reset_stats()
        recorder = RecordingTransport(status_code=404)

        with pytest.raises(NotFound):
            await fetch_lockfile(recorder)
        assert handler.get_error_stats()["FETCH_ERROR"] == 1


class TestLocalFileFetcher:
    """Offline previews read a lockfile from disk."""

    @pytest.mark.asyncio
    async def test_reads_lockfile(self, lockfile_path):
        fetcher = LocalFileFetcher(str(lockfile_path))
        lockfile = await fetcher.fetch_json_from_repo(
            "any", "repo", "Pipfile.lock", schema=LockfileDocument
        )
        assert lockfile.python_version == "3.7"

    @pytest.mark.asyncio
    async def test_other_filename_not_found(self, lockfile_path):
        fetcher = LocalFileFetcher(str(lockfile_path))
        with pytest.raises(NotFound):
            await fetcher.fetch_json_from_repo("any", "repo", "Pipfile")

    @pytest.mark.asyncio
    async def test_services_run_offline(self, lockfile_path):
        fetcher = LocalFileFetcher(str(lockfile_path))

        python_badge = await PythonVersionBadge(fetcher).handle("u", "r")
        dependency_badge = await DependencyVersionBadge(fetcher).handle(
            "u", "r", "pytest", kind="dev"
        )

        assert python_badge == BadgeData("python", "3.7", "blue")
        assert dependency_badge == BadgeData("pytest", "v5.2.1", "blue")


class TestDispatch:
    """Full route paths resolve to services and always yield a badge."""

    def test_resolve_route(self):
        service, params = resolve_route(
            "github/pipenv/locked/dependency-version/u/r/dev/black/master"
        )
        assert service is DependencyVersionBadge
        assert params == {
            "user": "u",
            "repo": "r",
            "kind": "dev",
            "package_name": "black",
            "branch": "master",
        }

    def test_resolve_unknown_route(self):
        with pytest.raises(NotFound):
            resolve_route("github/pipenv/locked/unknown/u/r")

    @pytest.mark.asyncio
    async def test_python_version_request(self, fake_fetcher):
        badge = await handle_request(
            "github/pipenv/locked/python-version/metabolize/rq-dashboard-on-heroku.json",
            fake_fetcher,
        )
        assert badge == BadgeData("python", "3.7", "blue")
        assert fake_fetcher.calls[0]["repo"] == "rq-dashboard-on-heroku"

    @pytest.mark.asyncio
    async def test_dependency_request_with_branch(self, fake_fetcher):
        badge = await handle_request(
            "github/pipenv/locked/dependency-version/u/r/dev/black/feature/new-lock",
            fake_fetcher,
        )
        assert badge == BadgeData("black", "v19.3b0", "blue")
        assert fake_fetcher.calls[0]["branch"] == "feature/new-lock"

    @pytest.mark.asyncio
    async def test_lookup_failure_becomes_error_badge(self, fake_fetcher):
        badge = await handle_request(
            "github/pipenv/locked/dependency-version/u/r/django", fake_fetcher
        )
        assert badge == BadgeData(
            "dependency", "default dependency not found", "red", is_error=True
        )

    @pytest.mark.asyncio
    async def test_fetch_failure_becomes_error_badge(self):
        fetcher = FakeFetcher(error=Inaccessible())
        badge = await handle_request("github/pipenv/locked/python-version/u/r", fetcher)

        assert badge == BadgeData("python", "inaccessible", "lightgrey", is_error=True)

    @pytest.mark.asyncio
    async def test_unknown_route_becomes_error_badge(self, fake_fetcher):
        badge = await handle_request("npm/v/flask", fake_fetcher)

        assert badge == BadgeData("badge", "route not found", "red", is_error=True)
        assert fake_fetcher.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self):
        fetcher = FakeFetcher(error=KeyError("boom"))
        with pytest.raises(KeyError):
            await invoke(PythonVersionBadge, fetcher, user="u", repo="r")

    @pytest.mark.asyncio
    async def test_error_callbacks_receive_lookup_failures(self, fake_fetcher):
        seen = []
        get_error_handler().register_callback(seen.append, ErrorCategory.LOOKUP)

        await invoke(
            DependencyVersionBadge, fake_fetcher, user="u", repo="r", package_name="nope"
        )

        assert len(seen) == 1
        assert seen[0].category is ErrorCategory.LOOKUP
        assert isinstance(seen[0].exception, Exception)

    @pytest.mark.asyncio
    async def test_end_to_end_over_http(self, lockfile_data):
        recorder = RecordingTransport(text=json.dumps(lockfile_data))
        async with GitHubContentFetcher(make_config(), transport=recorder.transport) as fetcher:
            badge = await handle_request(
                "github/pipenv/locked/dependency-version/u/r/werkzeug", fetcher
            )

        assert badge == BadgeData("werkzeug", "v0.16.0", "blue")
        assert badge.to_endpoint_json()["message"] == "v0.16.0"
