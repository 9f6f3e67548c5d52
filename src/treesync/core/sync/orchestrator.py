"""
Tree commit orchestration.

Drives one commit onto a branch of the remote host, strictly in order:

    RESOLVE_PARENT -> DIFF -> UPLOAD_CHANGED -> BUILD_TREE
        -> CREATE_COMMIT -> MOVE_REF -> DONE

The new tree always lists the complete desired path set (no base tree), so
the commit is a full-state replace of the branch contents.

Failures abort the remaining steps. Errors carry the step they surfaced
from; once any remote object has been created the error becomes a
PartialFailureError. Nothing is rolled back: blobs, trees and commits are
content-addressed, so orphans are harmless and re-running the same sync is
safe and idempotent (identical content hashes to identical blobs).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from treesync.core.exceptions import NotFoundError, PartialFailureError, TreeSyncError
from treesync.core.github.client import GitHubClient
from treesync.core.github.models import RepoInfo
from treesync.core.sync.batch import BatchScheduler
from treesync.core.sync.hashing import blob_sha
from treesync.core.sync.models import (
    REGULAR_FILE_MODE,
    BlobRef,
    BranchPointer,
    CommitRef,
    FileEntry,
    SyncResult,
    SyncStep,
)
from treesync.core.sync.planner import plan_changes

logger = logging.getLogger(__name__)


class TreeCommitOrchestrator:
    """
    Commits a desired file set onto a remote branch.

    Example:
        >>> orchestrator = TreeCommitOrchestrator(client, BatchScheduler())
        >>> result = await orchestrator.commit_files(
        ...     repo, "feature/docs", files, "Update docs", create_branch=True
        ... )
        >>> result.commit_sha
    """

    def __init__(self, client: GitHubClient, scheduler: BatchScheduler | None = None) -> None:
        """
        Initialize the orchestrator.

        Args:
            client: GitHub client (all calls rate-limit aware)
            scheduler: Default scheduler for blob uploads
        """
        self.client = client
        self.scheduler = scheduler or BatchScheduler()

    async def resolve_parent(
        self,
        repo: RepoInfo,
        branch: str,
        *,
        create_branch: bool = False,
        base_branch: str = "main",
    ) -> BranchPointer:
        """
        Find the commit the new commit builds on.

        Args:
            repo: Target repository
            branch: Branch to commit to
            create_branch: Resolve from ``base_branch`` if ``branch`` is absent
            base_branch: Branch to start a new branch from

        Returns:
            BranchPointer for ``branch``; ``exists`` is False when the branch
            has to be created

        Raises:
            NotFoundError: If the branch (or the base branch) does not exist
        """
        try:
            sha = await self.client.get_branch_ref(repo, branch)
            return BranchPointer(name=branch, commit_sha=sha, exists=True)
        except NotFoundError:
            if not create_branch:
                raise NotFoundError(
                    f"Branch '{branch}' not found in {repo.full_name}",
                    status_code=404,
                    repository=repo.full_name,
                    branch=branch,
                ) from None

        logger.info("Branch %s not found, starting it from %s", branch, base_branch)
        sha = await self.client.get_branch_ref(repo, base_branch)
        return BranchPointer(name=branch, commit_sha=sha, exists=False)

    async def commit_files(
        self,
        repo: RepoInfo,
        branch: str,
        files: Sequence[FileEntry],
        message: str,
        *,
        create_branch: bool = False,
        base_branch: str = "main",
        scheduler: BatchScheduler | None = None,
    ) -> SyncResult:
        """
        Make ``branch`` contain exactly ``files``.

        Paths present on the branch but missing from ``files`` are deleted
        by the new commit. When nothing would change, no commit is created
        and the result has ``no_changes=True`` (a missing branch is still
        created, pointing at its base).

        Args:
            repo: Target repository
            branch: Branch to commit to
            files: Complete desired file set
            message: Commit message
            create_branch: Create ``branch`` from ``base_branch`` if absent
            base_branch: Base for a new branch
            scheduler: Upload pacing override for this call

        Returns:
            SyncResult

        Raises:
            NotFoundError: Branch missing and ``create_branch`` is False
            PartialFailureError: A step failed after remote objects were created
            TreeSyncError: Any other failure, with ``step`` context
        """
        scheduler = scheduler or self.scheduler
        step = SyncStep.RESOLVE_PARENT
        uploaded_count = 0
        created_objects = False
        started = time.monotonic()

        try:
            pointer = await self.resolve_parent(
                repo, branch, create_branch=create_branch, base_branch=base_branch
            )

            step = SyncStep.DIFF
            parent_tree_sha = await self.client.get_commit_tree(repo, pointer.commit_sha)
            remote_tree = await self.client.get_tree(repo, parent_tree_sha, recursive=True)
            if remote_tree.truncated:
                logger.warning(
                    "Tree listing for %s@%s is truncated; unlisted files will be re-uploaded",
                    repo.full_name,
                    branch,
                )
            plan = plan_changes(files, remote_tree.tree)

            if not plan.has_changes:
                if not pointer.exists:
                    step = SyncStep.MOVE_REF
                    await self.client.create_ref(repo, branch, pointer.commit_sha)
                logger.info("No changes detected, %s@%s is up to date", repo.full_name, branch)
                return SyncResult(
                    repository=repo.full_name,
                    branch=branch,
                    url=repo.branch_url(branch),
                    created_branch=not pointer.exists,
                    no_changes=True,
                    reused=len(plan.reuse),
                )

            step = SyncStep.UPLOAD_CHANGED
            logger.info(
                "Uploading %d changed blobs in batches of %d (%d unchanged, %d removed)",
                len(plan.upload),
                scheduler.batch_size,
                len(plan.reuse),
                len(plan.removed),
            )

            async def upload(entry: FileEntry, index: int) -> BlobRef:
                nonlocal uploaded_count
                sha = await self.client.create_blob(repo, entry.content)
                uploaded_count += 1
                if sha != blob_sha(entry.content):
                    logger.debug("Remote blob sha for %s differs from local hash", entry.path)
                return BlobRef(
                    path=entry.path, sha=sha, mode=plan.modes.get(entry.path, REGULAR_FILE_MODE)
                )

            uploaded = await scheduler.run(plan.upload, upload)
            created_objects = True

            step = SyncStep.BUILD_TREE
            entries = plan.tree_entries(uploaded)
            tree_sha = await self.client.create_tree(
                repo, [ref.to_tree_entry() for ref in entries]
            )

            step = SyncStep.CREATE_COMMIT
            commit = CommitRef(
                sha=await self.client.create_commit(
                    repo, message, tree_sha, [pointer.commit_sha]
                ),
                tree_sha=tree_sha,
                parent_sha=pointer.commit_sha,
                message=message,
            )

            step = SyncStep.MOVE_REF
            if pointer.exists:
                await self.client.update_ref(repo, branch, commit.sha, force=True)
            else:
                await self.client.create_ref(repo, branch, commit.sha)

            step = SyncStep.DONE
            logger.info(
                "Committed %s to %s@%s in %dms",
                commit.sha[:8],
                repo.full_name,
                branch,
                int((time.monotonic() - started) * 1000),
            )
            return SyncResult(
                repository=repo.full_name,
                branch=branch,
                url=repo.branch_url(branch),
                commit_sha=commit.sha,
                created_branch=not pointer.exists,
                uploaded=len(uploaded),
                reused=len(plan.reuse),
                removed=len(plan.removed),
            )

        except TreeSyncError as e:
            if created_objects or uploaded_count:
                raise PartialFailureError(
                    f"Sync to {repo.full_name}@{branch} failed: {e.message}. "
                    f"{uploaded_count} blob(s) were uploaded and left in place; "
                    "retrying the sync is safe.",
                    step=step.value,
                    cause=e,
                    repository=repo.full_name,
                    branch=branch,
                ) from e
            e.with_step(step.value)
            raise
