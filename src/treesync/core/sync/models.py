"""
Data models for the sync engine.

Defines Pydantic models for desired file state, remote object references,
diff plans, and sync results. All values are request-scoped: nothing here
is cached between sync calls.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

REGULAR_FILE_MODE = "100644"


class SyncStep(str, Enum):
    """Steps of a tree commit, executed strictly in order."""

    RESOLVE_PARENT = "resolve_parent"
    DIFF = "diff"
    UPLOAD_CHANGED = "upload_changed"
    BUILD_TREE = "build_tree"
    CREATE_COMMIT = "create_commit"
    MOVE_REF = "move_ref"
    DONE = "done"


class FileEntry(BaseModel):
    """
    Desired state of one file.

    ``path`` is a normalized POSIX-style relative path (no leading slash,
    backslash, empty, `.` or `..` segment), so it compares equal to the
    remote tree listing. Duplicate paths are resolved by the planner. Text
    content is stored as its UTF-8 encoding.

    Example:
        >>> FileEntry(path="src/app.py", content="print('hi')\\n").content
        b"print('hi')\\n"
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="POSIX relative path")
    content: bytes = Field(default=b"", description="Raw file bytes")

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if "\\" in value:
            raise ValueError(f"path must use forward slashes: {value!r}")
        if value.startswith("/"):
            raise ValueError(f"path must be relative: {value!r}")
        if any(part in ("", ".", "..") for part in value.split("/")):
            raise ValueError(f"path has an empty, '.' or '..' segment: {value!r}")
        return value

    @field_validator("content", mode="before")
    @classmethod
    def _encode_text(cls, value: object) -> object:
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    @property
    def text(self) -> str:
        """Content decoded as UTF-8 (undecodable bytes replaced)."""
        return self.content.decode("utf-8", errors="replace")


class BlobRef(BaseModel):
    """
    Remote-addressable identity of a file's content at a path.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    sha: str
    mode: str = REGULAR_FILE_MODE
    type: str = "blob"

    def to_tree_entry(self) -> dict[str, str]:
        """Wire shape of a tree entry."""
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


class CommitRef(BaseModel):
    """An immutable commit created by the engine."""

    sha: str
    tree_sha: str
    parent_sha: str
    message: str


class BranchPointer(BaseModel):
    """
    A named, mutable pointer to a commit.

    ``exists`` is False when the branch was resolved from a base branch and
    must be created rather than updated.
    """

    name: str
    commit_sha: str
    exists: bool = True


class DiffPlan(BaseModel):
    """
    Partition of the desired file set against a remote tree.

    Full-replace semantics: the tree built from this plan contains only
    ``reuse`` and ``upload`` paths. Paths listed in ``removed`` exist
    remotely but were omitted by the caller, and disappear from the
    resulting commit. Omission is deletion.
    """

    reuse: list[BlobRef] = Field(default_factory=list)
    upload: list[FileEntry] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    modes: dict[str, str] = Field(
        default_factory=dict,
        description="Remote file mode of each upload path that already exists",
    )
    paths: list[str] = Field(
        default_factory=list,
        description="Desired paths in caller order (tree entry order)",
    )

    @property
    def has_changes(self) -> bool:
        """True if committing this plan would change the remote tree."""
        return bool(self.upload or self.removed)

    def tree_entries(self, uploaded: list[BlobRef]) -> list[BlobRef]:
        """
        Build the complete tree entry list for the new commit.

        Args:
            uploaded: BlobRefs created for every ``upload`` entry

        Returns:
            One BlobRef per desired path, in caller order

        Raises:
            ValueError: If a desired path has no blob
        """
        by_path = {ref.path: ref for ref in self.reuse}
        by_path.update({ref.path: ref for ref in uploaded})

        missing = [path for path in self.paths if path not in by_path]
        if missing:
            raise ValueError(f"No blob for desired paths: {', '.join(missing)}")

        return [by_path[path] for path in dict.fromkeys(self.paths)]


class SyncResult(BaseModel):
    """
    Outcome of a successful sync call.

    ``no_changes`` is True when the remote already matched the desired
    state; in that case no commit was created and ``commit_sha`` is None.
    """

    repository: str = Field(..., description="owner/repo")
    branch: str
    url: str = Field(..., description="Web URL of the synced branch")
    commit_sha: str | None = None
    created_branch: bool = False
    no_changes: bool = False
    uploaded: int = 0
    reused: int = 0
    removed: int = 0


class RepositoryResult(BaseModel):
    """Outcome of ensuring or creating a repository."""

    url: str
    full_name: str
    created: bool
    default_branch: str = "main"
    commit_sha: str | None = None
