"""
treesync - Git tree synchronization over REST.

Pushes and pulls complete file sets to and from GitHub-style hosts using the
Git Data API, with content-addressed diffing and rate-limit-aware pacing.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from treesync.core.exceptions import TreeSyncError
from treesync.core.github.models import Credentials
from treesync.core.sync.models import FileEntry, SyncResult
from treesync.core.sync.service import TreeSyncService

__all__ = [
    "Credentials",
    "FileEntry",
    "SyncResult",
    "TreeSyncError",
    "TreeSyncService",
    "__version__",
]
