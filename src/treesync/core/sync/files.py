"""
Local directory <-> file set conversion for the CLI.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from treesync.core.sync.models import FileEntry

IGNORED_DIRS = frozenset({".git"})


def collect_files(root: Path) -> list[FileEntry]:
    """
    Read every regular file under ``root`` as a desired file set.

    Paths are POSIX-style and relative to ``root``; ``.git`` directories are
    skipped. Entries are sorted by path.

    Raises:
        NotADirectoryError: If ``root`` is not a directory
    """
    if not root.is_dir():
        raise NotADirectoryError(f"{root} is not a directory")

    entries: list[FileEntry] = []
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in IGNORED_DIRS for part in relative.parts):
            continue
        if path.is_file() and not path.is_symlink():
            entries.append(FileEntry(path=relative.as_posix(), content=path.read_bytes()))
    return entries


def _safe_target(root: Path, posix_path: str) -> Path:
    relative = PurePosixPath(posix_path)
    if relative.is_absolute() or ".." in relative.parts:
        raise ValueError(f"Refusing to write outside {root}: {posix_path}")
    return root.joinpath(*relative.parts)


def write_files(root: Path, entries: list[FileEntry]) -> list[Path]:
    """
    Write a file set under ``root``, creating directories as needed.

    Existing files are overwritten; files not in ``entries`` are left alone.

    Raises:
        ValueError: If an entry path is absolute or escapes ``root``
    """
    written: list[Path] = []
    for entry in entries:
        target = _safe_target(root, entry.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(entry.content)
        written.append(target)
    return written
