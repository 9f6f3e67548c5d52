"""
Async GitHub REST client for treesync.

Speaks the Git Data API (blobs, trees, commits, refs) plus the handful of
repository and pull request endpoints the sync engine needs. Every request
goes through a RateLimitedExecutor; responses are mapped onto the treesync
error taxonomy:

    404                -> NotFoundError
    other 4xx/5xx      -> TransportError
    network failure    -> TransportError
    malformed 2xx body -> TransportError
    rate limit (spent) -> RateLimitExceededError (raised by the executor)
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from treesync.core.config.models import GitHubSettings
from treesync.core.exceptions import NotFoundError, TransportError
from treesync.core.github.models import (
    PullRequestInfo,
    RemoteTree,
    RepoInfo,
    RepositoryData,
)
from treesync.core.github.ratelimit import RateLimitedExecutor, RetryConfig, Sleep

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _ref_path(branch: str) -> str:
    return quote(branch, safe="/")


def _field(data: dict[str, Any], *keys: str, operation: str) -> str:
    """Read a nested field from a response body, failing as a TransportError."""
    value: Any = data
    for key in keys:
        if not isinstance(value, dict) or value.get(key) is None:
            raise TransportError(f"{operation}: response has no {'.'.join(keys)}")
        value = value[key]
    return str(value)


def _parse(model: type[M], data: dict[str, Any], *, operation: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise TransportError(
            f"{operation}: unexpected response: {e.error_count()} invalid field(s)"
        ) from e


class GitHubClient:
    """
    Client for the remote Git host's REST API.

    Owns an ``httpx.AsyncClient``; use as an async context manager or call
    ``aclose()`` when done.

    Example:
        >>> async with GitHubClient.connect(token) as client:
        ...     login = await client.get_authenticated_user()
        ...     repo = RepoInfo(owner=login, repo="site")
        ...     head = await client.get_branch_ref(repo, "main")
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        executor: RateLimitedExecutor | None = None,
        *,
        web_url: str = "https://github.com",
    ) -> None:
        """
        Initialize GitHubClient.

        Args:
            http: Configured async HTTP client (base URL and auth headers set)
            executor: Rate-limit executor wrapping every request
            web_url: Web UI base URL used when building RepoInfo values
        """
        self.http = http
        self.executor = executor or RateLimitedExecutor()
        self.web_url = web_url

    @classmethod
    def connect(
        cls,
        token: str,
        settings: GitHubSettings | None = None,
        retry: RetryConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> GitHubClient:
        """
        Create a client authenticated with a bearer token.

        Args:
            token: Bearer token
            settings: Endpoint settings (defaults to public GitHub)
            retry: Rate-limit retry configuration
            transport: Optional httpx transport (tests use MockTransport)
            sleep: Awaitable sleep used for backoff

        Returns:
            GitHubClient instance
        """
        settings = settings or GitHubSettings()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": settings.api_version,
            "User-Agent": settings.user_agent,
        }
        http = httpx.AsyncClient(
            base_url=settings.api_url.rstrip("/") + "/",
            headers=headers,
            timeout=settings.timeout,
            transport=transport,
        )
        executor = RateLimitedExecutor(retry, sleep=sleep)
        return cls(http, executor, web_url=settings.web_url)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def repo(self, owner: str, name: str) -> RepoInfo:
        """Build repository coordinates that link to this client's web UI."""
        return RepoInfo(owner=owner, repo=name, web_url=self.web_url)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Issue one request through the rate-limit executor.

        Returns:
            Decoded JSON object (empty dict for empty bodies)

        Raises:
            NotFoundError: On 404
            TransportError: On any other error status, network failure, or a
                success body that is not a JSON object
            RateLimitExceededError: If rate-limit retries are exhausted
        """

        async def call() -> httpx.Response:
            return await self.http.request(method, path, json=json, params=params)

        logger.debug("%s %s (%s)", method, path, operation)
        try:
            response = await self.executor.execute(call, operation=operation)
        except httpx.RequestError as e:
            raise TransportError(f"{operation}: network error: {e}", path=path) from e

        if response.status_code == 404:
            raise NotFoundError(f"{operation}: not found", status_code=404, path=path)

        if response.is_error:
            message = ""
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = str(body.get("message") or "")
            except ValueError:
                message = response.text[:200]
            raise TransportError(
                f"{operation}: HTTP {response.status_code}"
                + (f": {message}" if message else ""),
                status_code=response.status_code,
                path=path,
            )

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                f"{operation}: invalid JSON response",
                status_code=response.status_code,
                path=path,
            ) from e
        if not isinstance(body, dict):
            raise TransportError(
                f"{operation}: expected a JSON object, got {type(body).__name__}",
                status_code=response.status_code,
                path=path,
            )
        return body

    # ------------------------------------------------------------------
    # Account and repositories
    # ------------------------------------------------------------------

    async def get_authenticated_user(self) -> str:
        """Return the login of the token's owner."""
        data = await self._request("GET", "user", operation="get user")
        return _field(data, "login", operation="get user")

    async def get_repository(self, repo: RepoInfo) -> RepositoryData:
        data = await self._request("GET", repo.api_path, operation="get repository")
        return _parse(RepositoryData, data, operation="get repository")

    async def create_repository(
        self,
        name: str,
        description: str = "",
        *,
        private: bool = True,
        auto_init: bool = True,
    ) -> RepositoryData:
        """
        Create a repository for the authenticated user.

        ``auto_init`` gives the default branch an initial commit, so the
        first sync has a parent to build on.
        """
        payload = {
            "name": name,
            "description": description,
            "private": private,
            "auto_init": auto_init,
        }
        data = await self._request(
            "POST", "user/repos", operation="create repository", json=payload
        )
        return _parse(RepositoryData, data, operation="create repository")

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------

    async def get_branch_ref(self, repo: RepoInfo, branch: str) -> str:
        """
        Return the commit sha a branch points at.

        Raises:
            NotFoundError: If the branch does not exist
        """
        data = await self._request(
            "GET",
            f"{repo.api_path}/git/ref/heads/{_ref_path(branch)}",
            operation=f"get ref heads/{branch}",
        )
        return _field(data, "object", "sha", operation=f"get ref heads/{branch}")

    async def create_ref(self, repo: RepoInfo, branch: str, sha: str) -> None:
        await self._request(
            "POST",
            f"{repo.api_path}/git/refs",
            operation=f"create ref heads/{branch}",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )

    async def update_ref(
        self, repo: RepoInfo, branch: str, sha: str, *, force: bool = True
    ) -> None:
        await self._request(
            "PATCH",
            f"{repo.api_path}/git/refs/heads/{_ref_path(branch)}",
            operation=f"update ref heads/{branch}",
            json={"sha": sha, "force": force},
        )

    # ------------------------------------------------------------------
    # Commits and trees
    # ------------------------------------------------------------------

    async def get_commit_tree(self, repo: RepoInfo, commit_sha: str) -> str:
        """Return the tree sha of a commit object."""
        data = await self._request(
            "GET",
            f"{repo.api_path}/git/commits/{commit_sha}",
            operation="get commit",
        )
        return _field(data, "tree", "sha", operation="get commit")

    async def get_branch_head(self, repo: RepoInfo, branch: str) -> tuple[str, str]:
        """
        Resolve a branch (or any commit-ish) to its commit and tree sha.

        Returns:
            Tuple of (commit sha, tree sha)

        Raises:
            NotFoundError: If the branch does not exist
        """
        data = await self._request(
            "GET",
            f"{repo.api_path}/commits/{_ref_path(branch)}",
            operation=f"get branch {branch}",
        )
        operation = f"get branch {branch}"
        return (
            _field(data, "sha", operation=operation),
            _field(data, "commit", "tree", "sha", operation=operation),
        )

    async def get_tree(self, repo: RepoInfo, tree_sha: str, *, recursive: bool = True) -> RemoteTree:
        params = {"recursive": "1"} if recursive else None
        data = await self._request(
            "GET",
            f"{repo.api_path}/git/trees/{tree_sha}",
            operation="get tree",
            params=params,
        )
        return _parse(RemoteTree, data, operation="get tree")

    async def create_tree(self, repo: RepoInfo, entries: list[dict[str, str]]) -> str:
        """
        Create a tree from a complete list of entries.

        No ``base_tree`` is sent: the new tree contains exactly ``entries``.
        """
        data = await self._request(
            "POST",
            f"{repo.api_path}/git/trees",
            operation="create tree",
            json={"tree": entries},
        )
        return _field(data, "sha", operation="create tree")

    async def create_commit(
        self, repo: RepoInfo, message: str, tree_sha: str, parents: list[str]
    ) -> str:
        data = await self._request(
            "POST",
            f"{repo.api_path}/git/commits",
            operation="create commit",
            json={"message": message, "tree": tree_sha, "parents": parents},
        )
        return _field(data, "sha", operation="create commit")

    # ------------------------------------------------------------------
    # Blobs
    # ------------------------------------------------------------------

    async def create_blob(self, repo: RepoInfo, content: bytes) -> str:
        """Upload raw bytes as a blob and return its sha."""
        payload = {
            "content": base64.b64encode(content).decode("ascii"),
            "encoding": "base64",
        }
        data = await self._request(
            "POST",
            f"{repo.api_path}/git/blobs",
            operation="create blob",
            json=payload,
        )
        return _field(data, "sha", operation="create blob")

    async def get_blob(self, repo: RepoInfo, sha: str) -> bytes:
        """Download a blob's raw bytes."""
        data = await self._request(
            "GET",
            f"{repo.api_path}/git/blobs/{sha}",
            operation="get blob",
        )
        content = str(data.get("content") or "")
        if data.get("encoding", "base64") != "base64":
            return content.encode("utf-8")
        try:
            return base64.b64decode(content)
        except binascii.Error as e:
            raise TransportError(f"get blob: invalid base64 content for {sha}") from e

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def create_pull_request(
        self,
        repo: RepoInfo,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequestInfo:
        data = await self._request(
            "POST",
            f"{repo.api_path}/pulls",
            operation="create pull request",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        return PullRequestInfo.from_api(data)
