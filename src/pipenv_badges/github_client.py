"""
Fetchers for JSON files stored in GitHub repositories.

GitHubContentFetcher reads through the authenticated contents API when a
token is configured and falls back to anonymous raw.githubusercontent.com
downloads otherwise. LocalFileFetcher serves a lockfile from disk so badges
can be previewed offline.
"""

import base64
import binascii
import json
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Type
from urllib.parse import quote

import httpx
from httpx import RequestError
from pydantic import BaseModel

from .cli_config import ComprehensiveConfig, get_config
from .error_handling import log_credential_error, log_network_error
from .errors import Inaccessible, InvalidResponse, NotFound
from .lockfile import read_lockfile_json, validate_document
from .structured_logging import log_fetch

CREDENTIAL_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")


class RepoFileFetcher(Protocol):
    """Fetches and validates one JSON file from a repository."""

    async def fetch_json_from_repo(
        self,
        user: str,
        repo: str,
        filename: str,
        branch: Optional[str] = None,
        schema: Optional[Type[BaseModel]] = None,
    ) -> Any:
        ...


class GitHubContentResponse(BaseModel):
    """The part of a contents API response that carries the file."""

    content: str
    encoding: str = "base64"


def _validate_credential(credential: str, credential_type: str = "GitHub token") -> str:
    """
    Validate and sanitize a credential.

    Raises:
        ValueError: If credential is invalid or unsafe
    """
    if not credential or not isinstance(credential, str):
        raise ValueError(f"Invalid {credential_type}: must be a non-empty string")

    credential = credential.strip()
    security = get_config().security

    if len(credential) > security.max_credential_length:
        raise ValueError(
            f"{credential_type} too long: {len(credential)} chars "
            f"(max: {security.max_credential_length})"
        )
    if len(credential) < security.min_credential_length:
        raise ValueError(
            f"{credential_type} too short "
            f"(minimum {security.min_credential_length} characters)"
        )
    if not CREDENTIAL_PATTERN.match(credential):
        raise ValueError(f"Invalid {credential_type}: contains unsafe characters")

    return credential


def resolve_github_token(config: ComprehensiveConfig) -> Optional[str]:
    """Return the configured token, or None when absent or malformed."""
    if not config.github.token:
        return None
    try:
        return _validate_credential(config.github.token)
    except ValueError as e:
        log_credential_error(
            "Ignoring malformed GitHub token, falling back to anonymous access",
            "github_client",
            "resolve_github_token",
            credential_type="github_token",
            exception=e,
        )
        return None


def _not_found_message(filename: str) -> str:
    return f"repo not found, branch not found, or {filename} missing"


def _check_response(response: httpx.Response, filename: str) -> None:
    """Map an unsuccessful response onto a badge failure."""
    status = response.status_code
    if 200 <= status < 300:
        return

    log_network_error(
        f"Fetching {filename} failed with HTTP {status}",
        "github_client",
        "_check_response",
        url=str(response.request.url),
        status_code=status,
    )

    if status in (404, 422):
        raise NotFound(_not_found_message(filename))
    if status == 401:
        raise InvalidResponse("auth required")
    if status == 403:
        if response.headers.get("x-ratelimit-remaining") == "0":
            raise InvalidResponse("rate limited by upstream service")
        raise InvalidResponse("access denied")
    if status == 429:
        raise InvalidResponse("rate limited by upstream service")
    if status >= 500:
        raise Inaccessible()
    # Unfollowed redirects and other non-2xx statuses carry no file.
    raise InvalidResponse()


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidResponse("unparseable json response", underlying_error=e) from e


class GitHubContentFetcher:
    """
    Reads JSON files from GitHub repositories.

    Uses the async context manager pattern for httpx.AsyncClient resource
    management: the HTTP client is created on entry and closed on exit.
    """

    def __init__(
        self,
        config: Optional[ComprehensiveConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_config()
        self.token = resolve_github_token(self.config)
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

        self._headers = {"User-Agent": self.config.github.user_agent}
        if self.token:
            self._headers["Authorization"] = f"Bearer {self.token}"
            self._headers["Accept"] = "application/vnd.github.v3+json"

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    async def __aenter__(self):
        timeout = httpx.Timeout(
            self.config.github.read_timeout,
            connect=self.config.github.connect_timeout,
        )
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers=self._headers,
            transport=self.transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            await self.client.aclose()
            self.client = None

    def contents_url(self, user: str, repo: str, filename: str) -> str:
        return (
            f"{self.config.github.api_url}/repos/"
            f"{quote(user, safe='')}/{quote(repo, safe='')}/contents/{quote(filename)}"
        )

    def raw_url(self, user: str, repo: str, filename: str, branch: str) -> str:
        return (
            f"{self.config.github.raw_url}/"
            f"{quote(user, safe='')}/{quote(repo, safe='')}/"
            f"{quote(branch, safe='/')}/{quote(filename)}"
        )

    async def _get(
        self, url: str, params: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        if self.client is None:
            raise RuntimeError(
                "HTTP client not initialized - use within async context manager"
            )
        try:
            return await self.client.get(url, params=params)
        except RequestError as e:
            log_network_error(
                f"Network error: {e}",
                "github_client",
                "_get",
                url=url,
                exception=e,
            )
            raise Inaccessible(underlying_error=e) from e

    async def _fetch_text(
        self, user: str, repo: str, filename: str, branch: str
    ) -> str:
        start_time = time.time()

        if self.authenticated:
            response = await self._get(
                self.contents_url(user, repo, filename), params={"ref": branch}
            )
        else:
            response = await self._get(self.raw_url(user, repo, filename, branch))

        log_fetch(
            user,
            repo,
            filename,
            branch,
            self.authenticated,
            status_code=response.status_code,
            response_time_ms=round((time.time() - start_time) * 1000, 1),
        )
        _check_response(response, filename)

        if not self.authenticated:
            return response.text

        body = validate_document(_parse_json(response.text), GitHubContentResponse)
        try:
            return base64.b64decode(body.content).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise InvalidResponse("undecodable content", underlying_error=e) from e

    async def fetch_json_from_repo(
        self,
        user: str,
        repo: str,
        filename: str,
        branch: Optional[str] = None,
        schema: Optional[Type[BaseModel]] = None,
    ) -> Any:
        """
        Fetch a JSON file from a repository, optionally validating it.

        Args:
            user: Repository owner
            repo: Repository name
            filename: Path of the file inside the repository
            branch: Branch, tag or commit; the default branch when omitted
            schema: Optional pydantic model to validate the document into

        Returns:
            The decoded JSON, or a schema instance when schema is given

        Raises:
            NotFound: Repository, branch or file missing
            InvalidResponse: Undecodable, unparseable or invalid content
            Inaccessible: Network failure or upstream server error
        """
        ref = branch or self.config.github.default_branch
        data = _parse_json(await self._fetch_text(user, repo, filename, ref))
        if schema is None:
            return data
        return validate_document(data, schema)


class LocalFileFetcher:
    """Serves a lockfile from the local filesystem for every repository."""

    def __init__(self, file_path: str):
        self.file_path = file_path

    async def fetch_json_from_repo(
        self,
        user: str,
        repo: str,
        filename: str,
        branch: Optional[str] = None,
        schema: Optional[Type[BaseModel]] = None,
    ) -> Any:
        if Path(self.file_path).name != filename:
            raise NotFound(_not_found_message(filename))
        data = read_lockfile_json(self.file_path)
        if schema is None:
            return data
        return validate_document(data, schema)
