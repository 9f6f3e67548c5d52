"""Tests for diff planning and tree entry assembly."""

import pytest

from treesync.core.github.models import TreeItem
from treesync.core.sync.hashing import blob_sha
from treesync.core.sync.models import BlobRef, DiffPlan, FileEntry
from treesync.core.sync.planner import plan_changes


def remote(path: str, content: bytes, mode: str = "100644") -> TreeItem:
    return TreeItem(path=path, sha=blob_sha(content), mode=mode)


class TestPlanChanges:
    """Test suite for plan_changes."""

    def test_empty_remote_uploads_everything(self) -> None:
        plan = plan_changes([FileEntry(path="a.txt", content=b"x")], [])
        assert [entry.path for entry in plan.upload] == ["a.txt"]
        assert plan.reuse == []
        assert plan.removed == []
        assert plan.has_changes

    def test_identical_content_is_reused(self) -> None:
        plan = plan_changes(
            [FileEntry(path="a.txt", content=b"x")], [remote("a.txt", b"x")]
        )
        assert plan.upload == []
        assert plan.reuse == [BlobRef(path="a.txt", sha=blob_sha(b"x"))]
        assert not plan.has_changes

    def test_changed_content_is_uploaded(self) -> None:
        plan = plan_changes(
            [FileEntry(path="a.txt", content=b"y")], [remote("a.txt", b"x")]
        )
        assert [entry.path for entry in plan.upload] == ["a.txt"]
        assert plan.reuse == []

    def test_same_content_different_path_is_uploaded(self) -> None:
        """Identity is per path: a rename needs a tree entry under the new path."""
        plan = plan_changes(
            [FileEntry(path="b.txt", content=b"x")], [remote("a.txt", b"x")]
        )
        assert [entry.path for entry in plan.upload] == ["b.txt"]
        assert plan.removed == ["a.txt"]

    def test_omitted_remote_path_is_removed(self) -> None:
        plan = plan_changes(
            [FileEntry(path="a.txt", content=b"x")],
            [remote("a.txt", b"x"), remote("old.txt", b"gone")],
        )
        assert plan.upload == []
        assert plan.removed == ["old.txt"]
        assert plan.has_changes

    def test_empty_desired_set_removes_everything(self) -> None:
        plan = plan_changes([], [remote("a.txt", b"x"), remote("b/c.txt", b"y")])
        assert plan.removed == ["a.txt", "b/c.txt"]
        assert plan.tree_entries([]) == []

    def test_non_blob_entries_ignored(self) -> None:
        """Directory entries in a recursive listing are never reused or removed."""
        listing = [
            TreeItem(path="src", sha="d" * 40, mode="040000", type="tree"),
            remote("src/app.py", b"print()"),
        ]
        plan = plan_changes([FileEntry(path="src/app.py", content=b"print()")], listing)
        assert [ref.path for ref in plan.reuse] == ["src/app.py"]
        assert plan.removed == []

    def test_reuse_keeps_remote_mode(self) -> None:
        plan = plan_changes(
            [FileEntry(path="run.sh", content=b"#!/bin/sh\n")],
            [remote("run.sh", b"#!/bin/sh\n", mode="100755")],
        )
        assert plan.reuse[0].mode == "100755"

    def test_text_content_hashed_as_utf8(self) -> None:
        plan = plan_changes(
            [FileEntry(path="a.txt", content="héllo")], [remote("a.txt", "héllo".encode())]
        )
        assert plan.upload == []

    def test_paths_keep_caller_order(self) -> None:
        desired = [
            FileEntry(path="z.txt", content=b"1"),
            FileEntry(path="a.txt", content=b"2"),
        ]
        assert plan_changes(desired, []).paths == ["z.txt", "a.txt"]


class TestTreeEntries:
    """Test suite for DiffPlan.tree_entries."""

    def test_combines_reused_and_uploaded_in_caller_order(self) -> None:
        desired = [
            FileEntry(path="new.txt", content=b"n"),
            FileEntry(path="same.txt", content=b"s"),
        ]
        plan = plan_changes(desired, [remote("same.txt", b"s")])
        uploaded = [BlobRef(path="new.txt", sha=blob_sha(b"n"))]

        entries = plan.tree_entries(uploaded)

        assert [ref.path for ref in entries] == ["new.txt", "same.txt"]
        assert entries[0].to_tree_entry() == {
            "path": "new.txt",
            "mode": "100644",
            "type": "blob",
            "sha": blob_sha(b"n"),
        }

    def test_removed_paths_absent(self) -> None:
        plan = plan_changes(
            [FileEntry(path="keep.txt", content=b"k")],
            [remote("keep.txt", b"k"), remote("drop.txt", b"d")],
        )
        assert [ref.path for ref in plan.tree_entries([])] == ["keep.txt"]

    def test_missing_blob_raises(self) -> None:
        plan = plan_changes([FileEntry(path="a.txt", content=b"x")], [])
        with pytest.raises(ValueError, match="No blob for desired paths: a.txt"):
            plan.tree_entries([])

    def test_duplicate_paths_last_writer_wins(self) -> None:
        desired = [
            FileEntry(path="a.txt", content=b"first"),
            FileEntry(path="a.txt", content=b"second"),
        ]
        plan = plan_changes(desired, [])

        assert [entry.content for entry in plan.upload] == [b"second"]
        entries = plan.tree_entries([BlobRef(path="a.txt", sha=blob_sha(b"second"))])
        assert [ref.sha for ref in entries] == [blob_sha(b"second")]

    def test_duplicate_matching_remote_is_reused(self) -> None:
        desired = [
            FileEntry(path="b.txt", content=b"b"),
            FileEntry(path="a.txt", content=b"edited"),
            FileEntry(path="a.txt", content=b"orig"),
        ]
        plan = plan_changes(desired, [remote("a.txt", b"orig")])

        assert plan.paths == ["b.txt", "a.txt"]
        assert [ref.path for ref in plan.reuse] == ["a.txt"]
        assert [entry.path for entry in plan.upload] == ["b.txt"]

    def test_changed_file_records_remote_mode(self) -> None:
        plan = plan_changes(
            [FileEntry(path="run.sh", content=b"new"), FileEntry(path="fresh", content=b"f")],
            [remote("run.sh", b"old", mode="100755")],
        )
        assert plan.modes == {"run.sh": "100755"}

    def test_has_changes_false_for_empty_plan(self) -> None:
        assert DiffPlan().has_changes is False
