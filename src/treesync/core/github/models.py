"""
GitHub data models for treesync.

Defines Pydantic models for repository coordinates, credentials, and the
Git Data API payloads the engine reads.
"""

from __future__ import annotations

import os
import re

from pydantic import BaseModel, Field, computed_field

from treesync.core.exceptions import MissingCredentialsError

DEFAULT_WEB_URL = "https://github.com"


class Credentials(BaseModel):
    """
    Caller-supplied credentials.

    The token is opaque to the engine; acquiring and refreshing it is the
    caller's job. The account is the login that owns target repositories and
    may be resolved from the token when omitted.
    """

    token: str = Field(default="", repr=False, description="Bearer token")
    account: str | None = Field(default=None, description="Account (login) identifier")

    def require_token(self) -> str:
        """Return the token or fail fast without touching the network."""
        if not self.token:
            raise MissingCredentialsError("access token")
        return self.token

    def require_account(self) -> str:
        """Return the account or fail fast without touching the network."""
        self.require_token()
        if not self.account:
            raise MissingCredentialsError("user name")
        return self.account

    @classmethod
    def from_env(cls) -> Credentials:
        """
        Build credentials from the environment.

        Reads TREESYNC_GITHUB_TOKEN or GITHUB_TOKEN, and TREESYNC_GITHUB_USER
        or GITHUB_USER.
        """
        token = os.environ.get("TREESYNC_GITHUB_TOKEN") or os.environ.get("GITHUB_TOKEN", "")
        account = os.environ.get("TREESYNC_GITHUB_USER") or os.environ.get("GITHUB_USER")
        return cls(token=token, account=account or None)


class RepoInfo(BaseModel):
    """
    GitHub repository coordinates.

    Example:
        >>> RepoInfo(owner="octo", repo="site").full_name
        'octo/site'
        >>> RepoInfo.parse("octo/site")
        RepoInfo(owner='octo', repo='site', web_url='https://github.com')
    """

    owner: str = Field(..., description="Repository owner (user or organization)")
    repo: str = Field(..., description="Repository name")
    web_url: str = Field(default=DEFAULT_WEB_URL, description="Web UI base URL")

    @computed_field
    @property
    def full_name(self) -> str:
        """Full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"

    @computed_field
    @property
    def url(self) -> str:
        """Web URL for the repository."""
        return f"{self.web_url.rstrip('/')}/{self.owner}/{self.repo}"

    def branch_url(self, branch: str) -> str:
        """Get web URL for a specific branch."""
        return f"{self.url}/tree/{branch}"

    @property
    def api_path(self) -> str:
        """REST path prefix for this repository."""
        return f"repos/{self.owner}/{self.repo}"

    @classmethod
    def parse(cls, value: str, default_owner: str | None = None) -> RepoInfo:
        """
        Parse ``owner/repo`` or a bare repository name.

        Args:
            value: "owner/repo", "repo", or a GitHub remote URL
            default_owner: Owner used when ``value`` has none

        Returns:
            RepoInfo

        Raises:
            ValueError: If no owner can be determined
        """
        from_url = cls.from_remote_url(value)
        if from_url:
            return from_url

        if "/" in value:
            owner, _, repo = value.partition("/")
            return cls(owner=owner, repo=repo)

        if not default_owner:
            raise ValueError(f"Repository '{value}' has no owner and no default account")
        return cls(owner=default_owner, repo=value)

    @classmethod
    def from_remote_url(cls, remote_url: str) -> RepoInfo | None:
        """
        Parse repository info from a git remote URL.

        Handles formats:
        - git@github.com:user/repo.git
        - https://github.com/user/repo(.git)

        Returns:
            RepoInfo or None if not a valid GitHub URL
        """
        if not remote_url:
            return None

        ssh_match = re.match(
            r"git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$",
            remote_url,
        )
        if ssh_match:
            return cls(owner=ssh_match.group(1), repo=ssh_match.group(2))

        https_match = re.match(
            r"https?://github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$",
            remote_url,
        )
        if https_match:
            return cls(owner=https_match.group(1), repo=https_match.group(2))

        return None


class TreeItem(BaseModel):
    """One entry of a remote (recursive) tree listing."""

    path: str
    mode: str = "100644"
    type: str = "blob"
    sha: str
    size: int | None = None

    @property
    def is_blob(self) -> bool:
        return self.type == "blob"


class RemoteTree(BaseModel):
    """A recursive tree listing as returned by the Git Data API."""

    sha: str
    tree: list[TreeItem] = Field(default_factory=list)
    truncated: bool = False

    def blobs(self) -> list[TreeItem]:
        """File entries only, in listing order."""
        return [item for item in self.tree if item.is_blob]


class RepositoryData(BaseModel):
    """Subset of the repository payload the engine relies on."""

    name: str
    full_name: str
    html_url: str
    default_branch: str = "main"
    private: bool = True


class PullRequestInfo(BaseModel):
    """A created pull request."""

    url: str = Field(..., description="HTML URL of the pull request")
    number: int
    title: str = ""
    state: str = "open"

    @classmethod
    def from_api(cls, data: dict[str, object]) -> PullRequestInfo:
        number = data.get("number", 0)
        return cls(
            url=str(data.get("html_url") or ""),
            number=int(number) if isinstance(number, (int, float)) else 0,
            title=str(data.get("title") or ""),
            state=str(data.get("state") or "open"),
        )
