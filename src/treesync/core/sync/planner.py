"""
Diff planning between a desired file set and a remote tree.

Identity is decided purely by content addressing: a desired file whose local
blob sha equals the remote blob sha at the same path is reused, everything
else is uploaded. No remote bytes are fetched.

Synchronization is a full-state replace. The planned tree contains exactly
the desired paths; a remote path the caller left out is reported in
``removed`` and is gone from the next commit. There is no separate delete
operation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from treesync.core.github.models import TreeItem
from treesync.core.sync.hashing import blob_sha
from treesync.core.sync.models import BlobRef, DiffPlan, FileEntry

logger = logging.getLogger(__name__)


def plan_changes(desired: Iterable[FileEntry], remote_tree: Iterable[TreeItem]) -> DiffPlan:
    """
    Partition ``desired`` into reusable and to-upload entries.

    Args:
        desired: Caller's complete desired file set
        remote_tree: Recursive listing of the parent commit's tree
            (non-blob entries are ignored)

    Returns:
        DiffPlan with ``reuse`` (remote BlobRef carried forward, including
        its mode), ``upload`` (new or changed files; ``modes`` keeps the
        remote mode of changed ones) and ``removed`` (remote paths absent
        from ``desired``)

    Example:
        >>> plan = plan_changes([FileEntry(path="a.txt", content=b"x")], [])
        >>> [entry.path for entry in plan.upload]
        ['a.txt']
    """
    remote_by_path = {item.path: item for item in remote_tree if item.is_blob}

    # Last entry for a path wins; the path keeps its first position.
    latest: dict[str, FileEntry] = {}
    for entry in desired:
        latest[entry.path] = entry

    reuse: list[BlobRef] = []
    upload: list[FileEntry] = []
    modes: dict[str, str] = {}
    paths = list(latest)

    for entry in latest.values():
        existing = remote_by_path.get(entry.path)
        if existing is not None and existing.sha == blob_sha(entry.content):
            reuse.append(BlobRef(path=entry.path, sha=existing.sha, mode=existing.mode))
        else:
            upload.append(entry)
            if existing is not None:
                modes[entry.path] = existing.mode

    wanted = set(paths)
    removed = [path for path in remote_by_path if path not in wanted]

    logger.debug(
        "Planned %d reuse, %d upload, %d removed",
        len(reuse),
        len(upload),
        len(removed),
    )
    return DiffPlan(reuse=reuse, upload=upload, removed=removed, modes=modes, paths=paths)
