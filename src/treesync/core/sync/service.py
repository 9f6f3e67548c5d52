"""
Caller-facing sync operations.

TreeSyncService is the boundary the rest of an application talks to: it
takes credentials, a repository name and a desired file set, and returns a
result model or raises a typed error from ``treesync.core.exceptions``.

Every sync is a full-state replace: files missing from the desired set are
deleted from the target branch. Retrying a failed sync is always safe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx

from treesync.core.config import TreeSyncConfig, load_config
from treesync.core.config.models import RetrySettings
from treesync.core.exceptions import NotFoundError
from treesync.core.github.client import GitHubClient
from treesync.core.github.models import Credentials, PullRequestInfo, RepoInfo
from treesync.core.github.ratelimit import RetryConfig
from treesync.core.sync.batch import BatchScheduler, Sleep
from treesync.core.sync.bootstrap import RepositoryBootstrapper
from treesync.core.sync.models import FileEntry, RepositoryResult, SyncResult
from treesync.core.sync.orchestrator import TreeCommitOrchestrator
from treesync.core.sync.reader import InboundSyncReader

logger = logging.getLogger(__name__)


def retry_config_from_settings(settings: RetrySettings) -> RetryConfig:
    return RetryConfig(
        max_retries=settings.max_retries,
        base_delay=settings.base_delay,
        multiplier=settings.multiplier,
        reset_buffer=settings.reset_buffer,
        jitter=settings.jitter,
    )


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def split_legacy_repo_name(repo_name: str, branch: str | None, default_branch: str) -> tuple[str, str]:
    """
    Resolve the repository and branch for a read.

    Older callers pass ``"repo/branch"`` as the repository name; an explicit
    ``branch`` always wins over the embedded one.

    Example:
        >>> split_legacy_repo_name("site/dev", None, "main")
        ('site', 'dev')
        >>> split_legacy_repo_name("site/dev", "qa", "main")
        ('site', 'qa')
    """
    if "/" in repo_name:
        repo, _, embedded = repo_name.partition("/")
        return repo, branch or embedded or default_branch
    return repo_name, branch or default_branch


class TreeSyncService:
    """
    High-level sync operations against one account's repositories.

    Example:
        >>> credentials = Credentials(token="ghp_...", account="octo")
        >>> async with TreeSyncService.connect(credentials) as service:
        ...     result = await service.sync_branch("site", "preview", files)
        ...     print(result.url, result.commit_sha)
    """

    def __init__(
        self,
        client: GitHubClient,
        credentials: Credentials,
        config: TreeSyncConfig | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the service.

        Args:
            client: Connected GitHub client
            credentials: Caller credentials (account may be None)
            config: Configuration (defaults to load_config())
            sleep: Awaitable sleep for pacing (injectable for tests)
        """
        self.client = client
        self.credentials = credentials
        self.config = config or load_config()
        self._account = credentials.account

        self.orchestrator = TreeCommitOrchestrator(
            client, BatchScheduler.from_settings(self.config.uploads, sleep=sleep)
        )
        self.branch_scheduler = BatchScheduler.from_settings(
            self.config.branch_uploads, sleep=sleep
        )
        self.reader = InboundSyncReader(
            client, BatchScheduler.from_settings(self.config.downloads, sleep=sleep)
        )
        self.bootstrapper = RepositoryBootstrapper(
            client,
            self.orchestrator,
            private=self.config.repository.private,
            description_limit=self.config.repository.description_limit,
            settle_delay=self.config.repository.settle_delay,
            sleep=sleep,
        )

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        credentials: Credentials,
        config: TreeSyncConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> AsyncIterator[TreeSyncService]:
        """
        Open a service with its own HTTP client.

        Raises:
            MissingCredentialsError: If no token was supplied (no network call)
        """
        token = credentials.require_token()
        config = config or load_config()
        client = GitHubClient.connect(
            token,
            config.github,
            retry_config_from_settings(config.retry),
            transport=transport,
            sleep=sleep,
        )
        try:
            yield cls(client, credentials, config, sleep=sleep)
        finally:
            await client.aclose()

    @property
    def default_branch(self) -> str:
        return self.config.github.default_branch

    async def resolve_account(self) -> str:
        """Return the account login, asking the remote when not supplied."""
        if not self._account:
            self._account = await self.client.get_authenticated_user()
            logger.debug("Resolved account %s from token", self._account)
        return self._account

    def _repo(self, owner: str, name: str) -> RepoInfo:
        return self.client.repo(owner, name)

    async def create_repository(
        self, name: str, description: str, files: Sequence[FileEntry]
    ) -> RepositoryResult:
        """
        Create a repository seeded with ``files``.

        Idempotent: an existing repository of the same name is returned
        as-is with ``created=False``.

        Raises:
            MissingCredentialsError: If the account is not supplied
            PartialFailureError: Created, but the initial sync failed
        """
        owner = self.credentials.require_account()
        logger.info("Creating repository %s/%s with %d files", owner, name, len(files))
        return await self.bootstrapper.bootstrap(self._repo(owner, name), description, files)

    async def sync_full_repository(
        self,
        repo_name: str,
        files: Sequence[FileEntry],
        commit_message: str | None = None,
    ) -> SyncResult:
        """
        Replace the default branch's contents with ``files``.

        Returns a result with ``no_changes=True`` when nothing differs.

        Raises:
            NotFoundError: If the repository or default branch is missing
        """
        owner = await self.resolve_account()
        return await self.orchestrator.commit_files(
            self._repo(owner, repo_name),
            self.default_branch,
            files,
            commit_message or f"treesync sync - {_timestamp()}",
        )

    async def sync_branch(
        self,
        repo_name: str,
        branch_name: str,
        files: Sequence[FileEntry],
        commit_message: str | None = None,
        base_branch: str | None = None,
    ) -> SyncResult:
        """
        Replace a branch's contents with ``files``, creating the branch
        from ``base_branch`` (default branch by default) when missing.

        Raises:
            ValueError: If ``branch_name`` is empty
        """
        if not branch_name:
            raise ValueError("branch_name is required")
        owner = await self.resolve_account()
        return await self.orchestrator.commit_files(
            self._repo(owner, repo_name),
            branch_name,
            files,
            commit_message or f"treesync sync to {branch_name} - {_timestamp()}",
            create_branch=True,
            base_branch=base_branch or self.default_branch,
            scheduler=self.branch_scheduler,
        )

    async def read_repository(self, repo_name: str, branch: str | None = None) -> list[FileEntry]:
        """
        Download every file on a branch.

        ``repo_name`` may use the legacy ``"repo/branch"`` form.

        Raises:
            BranchNotFoundError: If the branch does not exist
        """
        name, resolved_branch = split_legacy_repo_name(repo_name, branch, self.default_branch)
        owner = await self.resolve_account()
        return await self.reader.read_tree(self._repo(owner, name), resolved_branch)

    async def create_branch(
        self, repo_name: str, branch_name: str, base_branch: str | None = None
    ) -> str:
        """
        Create ``branch_name`` pointing at the head of ``base_branch``.

        Returns:
            Web URL of the new branch

        Raises:
            NotFoundError: If the base branch does not exist
        """
        owner = self.credentials.require_account()
        base = base_branch or self.default_branch
        repo = self._repo(owner, repo_name)
        try:
            sha = await self.client.get_branch_ref(repo, base)
        except NotFoundError as e:
            raise NotFoundError(
                f"Base branch '{base}' not found in {repo.full_name}",
                status_code=404,
                repository=repo.full_name,
                branch=base,
            ) from e
        await self.client.create_ref(repo, branch_name, sha)
        return repo.branch_url(branch_name)

    async def create_pull_request(
        self,
        repo_name: str,
        title: str,
        body: str,
        head_branch: str,
        base_branch: str | None = None,
    ) -> PullRequestInfo:
        """Open a pull request from ``head_branch`` into ``base_branch``."""
        owner = self.credentials.require_account()
        if not repo_name or not title or not head_branch:
            raise ValueError("Repository name, title, and head branch are required")
        return await self.client.create_pull_request(
            self._repo(owner, repo_name),
            title=title,
            body=body or "",
            head=f"{owner}:{head_branch}",
            base=base_branch or self.default_branch,
        )
