"""
Idempotent repository creation followed by the initial full sync.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Sequence

from treesync.core.exceptions import NotFoundError, PartialFailureError, TreeSyncError
from treesync.core.github.client import GitHubClient
from treesync.core.github.models import RepoInfo
from treesync.core.sync.batch import Sleep
from treesync.core.sync.models import FileEntry, RepositoryResult, SyncStep
from treesync.core.sync.orchestrator import TreeCommitOrchestrator

logger = logging.getLogger(__name__)

INITIAL_COMMIT_MESSAGE = "Initial commit with project files"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_description(description: str | None, limit: int = 20) -> str:
    """
    Make a repository description safe to send.

    Control characters become spaces, surrounding whitespace is trimmed and
    the result is capped at ``limit`` characters.

    Example:
        >>> sanitize_description("  My\\tproject\\nnotes ", limit=20)
        'My project notes'
    """
    if not description:
        return ""
    cleaned = _CONTROL_CHARS.sub(" ", description).strip()
    return cleaned[:limit].rstrip()


class RepositoryBootstrapper:
    """
    Ensures a repository exists, then seeds it with the caller's files.

    The remote needs a moment after the first ref update before it reliably
    shows the new commit, so ``bootstrap`` waits ``settle_delay`` seconds
    before reporting the repository ready.
    """

    def __init__(
        self,
        client: GitHubClient,
        orchestrator: TreeCommitOrchestrator,
        *,
        private: bool = True,
        description_limit: int = 20,
        settle_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.orchestrator = orchestrator
        self.private = private
        self.description_limit = description_limit
        self.settle_delay = settle_delay
        self._sleep = sleep

    async def ensure_repository(self, repo: RepoInfo, description: str = "") -> RepositoryResult:
        """
        Return the repository, creating it if it does not exist.

        Never fails because the repository already exists: an existing
        repository is returned with ``created=False``. New repositories are
        auto-initialized so their default branch has a parent commit.

        Raises:
            TreeSyncError: Any failure other than "not found" on lookup
        """
        try:
            existing = await self.client.get_repository(repo)
        except NotFoundError:
            existing = None

        if existing is not None:
            logger.info("Repository %s already exists", existing.full_name)
            return RepositoryResult(
                url=existing.html_url,
                full_name=existing.full_name,
                created=False,
                default_branch=existing.default_branch,
            )

        created = await self.client.create_repository(
            repo.repo,
            sanitize_description(description, self.description_limit),
            private=self.private,
            auto_init=True,
        )
        logger.info("Created repository %s", created.full_name)
        return RepositoryResult(
            url=created.html_url,
            full_name=created.full_name,
            created=True,
            default_branch=created.default_branch,
        )

    async def bootstrap(
        self,
        repo: RepoInfo,
        description: str,
        files: Sequence[FileEntry],
        *,
        message: str = INITIAL_COMMIT_MESSAGE,
    ) -> RepositoryResult:
        """
        Create a repository and commit ``files`` as its initial content.

        An already existing repository is returned untouched. The initial
        commit replaces the auto-initialized content with exactly ``files``.

        Raises:
            PartialFailureError: The repository was created but seeding it
                failed; ``resource_url`` points at the new repository
        """
        started = time.monotonic()
        result = await self.ensure_repository(repo, description)
        if not result.created:
            return result

        logger.info("Seeding %s with %d files", result.full_name, len(files))
        try:
            sync = await self.orchestrator.commit_files(
                repo, result.default_branch, files, message
            )
        except TreeSyncError as e:
            raise PartialFailureError(
                f"Repository was created at {result.url} but file upload failed: "
                f"{e.message}. Delete the repository and try again, "
                "or run a full sync against it.",
                step=e.step or SyncStep.RESOLVE_PARENT.value,
                cause=e,
                resource_url=result.url,
            ) from e

        if self.settle_delay > 0:
            await self._sleep(self.settle_delay)

        logger.info(
            "Repository %s ready in %dms", result.full_name, int((time.monotonic() - started) * 1000)
        )
        return result.model_copy(update={"commit_sha": sync.commit_sha})
