"""
Git tree synchronization engine.

Reconciles a desired file set (path + bytes) with a branch on a remote Git
host through its REST Git Data API:

    desired files --plan--> reuse / upload
                  --upload blobs (batched)--> tree --> commit --> ref

Synchronization is a full-state replace: a path the caller omits is deleted
from the resulting commit.

Example:
    >>> from treesync.core.sync import FileEntry, TreeSyncService
    >>> async with TreeSyncService.connect(credentials) as service:
    ...     result = await service.sync_branch(
    ...         "site", "preview", [FileEntry(path="index.html", content="<h1>hi</h1>")]
    ...     )
"""

from treesync.core.sync.batch import BatchScheduler
from treesync.core.sync.bootstrap import RepositoryBootstrapper, sanitize_description
from treesync.core.sync.hashing import blob_sha
from treesync.core.sync.models import (
    BlobRef,
    BranchPointer,
    CommitRef,
    DiffPlan,
    FileEntry,
    RepositoryResult,
    SyncResult,
    SyncStep,
)
from treesync.core.sync.orchestrator import TreeCommitOrchestrator
from treesync.core.sync.planner import plan_changes
from treesync.core.sync.reader import InboundSyncReader
from treesync.core.sync.service import TreeSyncService

__all__ = [
    "BatchScheduler",
    "BlobRef",
    "BranchPointer",
    "CommitRef",
    "DiffPlan",
    "FileEntry",
    "InboundSyncReader",
    "RepositoryBootstrapper",
    "RepositoryResult",
    "SyncResult",
    "SyncStep",
    "TreeCommitOrchestrator",
    "TreeSyncService",
    "blob_sha",
    "plan_changes",
    "sanitize_description",
]
