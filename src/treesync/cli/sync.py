"""
treesync CLI - push and pull commands.

``push`` makes a remote branch contain exactly the files of a local
directory (files missing locally are deleted remotely). ``pull`` writes the
files of a remote branch into a local directory.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from treesync.cli.context import run_with_service
from treesync.core.sync.files import collect_files, write_files
from treesync.core.sync.models import SyncResult
from treesync.core.sync.service import TreeSyncService

console = Console()


def _print_result(result: SyncResult, verbose: bool) -> None:
    if result.no_changes:
        if result.created_branch:
            console.print(f"[green]✓[/green] Created branch {result.branch} (no file changes)")
        else:
            console.print("[blue]No changes detected, repository is up to date[/blue]")
    else:
        action = "Created" if result.created_branch else "Updated"
        console.print(
            f"[green]✓[/green] {action} {result.branch}: {result.commit_sha[:8] if result.commit_sha else ''}"
        )
    console.print(f"[dim]{result.url}[/dim]")

    if verbose:
        table = Table(title="Sync Details", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Repository", result.repository)
        table.add_row("Branch", result.branch)
        table.add_row("Uploaded", str(result.uploaded))
        table.add_row("Unchanged", str(result.reused))
        table.add_row("Removed", str(result.removed))
        if result.commit_sha:
            table.add_row("Commit", result.commit_sha)
        console.print()
        console.print(table)


def push(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository name"),
    directory: Path = typer.Argument(
        Path("."),
        help="Directory whose files become the branch contents",
        exists=True,
        file_okay=False,
    ),
    branch: str | None = typer.Option(
        None,
        "--branch",
        "-b",
        help="Branch to sync (created if missing); default syncs the default branch",
    ),
    base: str | None = typer.Option(
        None,
        "--base",
        help="Base branch for a newly created branch",
    ),
    message: str | None = typer.Option(
        None,
        "--message",
        "-m",
        help="Custom commit message",
    ),
    account: str | None = typer.Option(
        None,
        "--account",
        help="Repository owner (defaults to the token's user)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show upload statistics",
    ),
) -> None:
    """
    Replace a remote branch's contents with a local directory.

    Files present on the branch but not in DIRECTORY are deleted by the
    new commit. Unchanged files are not re-uploaded.

    Examples:
        treesync push site ./build               # Sync the default branch
        treesync push site ./build -b preview    # Sync (or create) a branch
        treesync push site . -m "Release 1.2"    # Custom commit message
    """
    files = collect_files(directory)

    async def operation(service: TreeSyncService) -> SyncResult:
        with console.status(f"Syncing {len(files)} files..."):
            if branch:
                return await service.sync_branch(repo, branch, files, message, base)
            return await service.sync_full_repository(repo, files, message)

    result = run_with_service(ctx, "push", operation, account)
    _print_result(result, verbose)


def pull(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository name (or legacy repo/branch)"),
    directory: Path = typer.Argument(
        Path("."),
        help="Directory to write files into",
        file_okay=False,
    ),
    branch: str | None = typer.Option(
        None,
        "--branch",
        "-b",
        help="Branch to read (defaults to the default branch)",
    ),
    account: str | None = typer.Option(
        None,
        "--account",
        help="Repository owner (defaults to the token's user)",
    ),
) -> None:
    """
    Download every file on a remote branch into a local directory.

    Examples:
        treesync pull site ./checkout
        treesync pull site ./checkout -b preview
    """

    async def operation(service: TreeSyncService) -> list[Path]:
        with console.status("Downloading files..."):
            files = await service.read_repository(repo, branch)
        return write_files(directory, files)

    written = run_with_service(ctx, "pull", operation, account)
    console.print(f"[green]✓[/green] Wrote {len(written)} files to {directory}")
