"""
Inbound sync: reconstruct a file set from a remote branch.
"""

from __future__ import annotations

import logging
import time

from treesync.core.exceptions import BranchNotFoundError, NotFoundError
from treesync.core.github.client import GitHubClient
from treesync.core.github.models import RepoInfo, TreeItem
from treesync.core.sync.batch import BatchScheduler
from treesync.core.sync.models import FileEntry

logger = logging.getLogger(__name__)


class InboundSyncReader:
    """
    Downloads every file on a branch.

    Reads are cheap against the remote's rate budget, so the scheduler used
    here is normally configured with larger batches than uploads.
    """

    def __init__(self, client: GitHubClient, scheduler: BatchScheduler | None = None) -> None:
        self.client = client
        self.scheduler = scheduler or BatchScheduler(batch_size=20, intra_delay=0.1, inter_delay=0.2)

    async def read_tree(self, repo: RepoInfo, branch: str) -> list[FileEntry]:
        """
        Fetch the complete file set of ``branch``.

        Args:
            repo: Source repository
            branch: Branch name

        Returns:
            FileEntry list in tree order (blobs only)

        Raises:
            BranchNotFoundError: If the branch does not exist
        """
        started = time.monotonic()
        try:
            _, tree_sha = await self.client.get_branch_head(repo, branch)
        except NotFoundError as e:
            raise BranchNotFoundError(repo.repo, branch) from e

        tree = await self.client.get_tree(repo, tree_sha, recursive=True)
        if tree.truncated:
            logger.warning("Tree listing for %s@%s is truncated", repo.full_name, branch)
        blobs = tree.blobs()

        async def download(item: TreeItem, index: int) -> FileEntry:
            content = await self.client.get_blob(repo, item.sha)
            return FileEntry(path=item.path, content=content)

        files = await self.scheduler.run(blobs, download)
        logger.info(
            "Read %d files from %s@%s in %dms",
            len(files),
            repo.full_name,
            branch,
            int((time.monotonic() - started) * 1000),
        )
        return files
