"""
treesync CLI - repository, branch and pull request commands.
"""

from pathlib import Path

import typer
from rich.console import Console

from treesync.cli.context import run_with_service
from treesync.core.github.models import PullRequestInfo
from treesync.core.sync.files import collect_files
from treesync.core.sync.models import RepositoryResult
from treesync.core.sync.service import TreeSyncService

console = Console()


def create_repo(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Repository name"),
    directory: Path = typer.Argument(
        Path("."),
        help="Directory whose files seed the repository",
        exists=True,
        file_okay=False,
    ),
    description: str = typer.Option(
        "",
        "--description",
        "-d",
        help="Repository description (trimmed and shortened)",
    ),
    account: str | None = typer.Option(
        None,
        "--account",
        help="Owner login (defaults to GITHUB_USER)",
    ),
) -> None:
    """
    Create a repository and commit a directory as its initial content.

    If the repository already exists its URL is printed and nothing is
    uploaded.

    Examples:
        treesync create-repo site ./build -d "Marketing site"
    """
    files = collect_files(directory)

    async def operation(service: TreeSyncService) -> RepositoryResult:
        with console.status(f"Creating {name} with {len(files)} files..."):
            return await service.create_repository(name, description, files)

    result = run_with_service(ctx, "create-repo", operation, account)
    if result.created:
        console.print(f"[green]✓[/green] Created {result.full_name}")
    else:
        console.print(f"[blue]Repository {result.full_name} already exists[/blue]")
    console.print(result.url)


def branch(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository name"),
    name: str = typer.Argument(..., help="New branch name"),
    base: str | None = typer.Option(
        None,
        "--base",
        help="Branch to start from (defaults to the default branch)",
    ),
    account: str | None = typer.Option(
        None,
        "--account",
        help="Owner login (defaults to GITHUB_USER)",
    ),
) -> None:
    """
    Create a branch from the head of another branch.

    Examples:
        treesync branch site preview
        treesync branch site hotfix --base release
    """

    async def operation(service: TreeSyncService) -> str:
        return await service.create_branch(repo, name, base)

    url = run_with_service(ctx, "branch", operation, account)
    console.print(f"[green]✓[/green] Created branch {name}")
    console.print(url)


def pr(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository name"),
    title: str = typer.Option(..., "--title", "-t", help="Pull request title"),
    head: str = typer.Option(..., "--head", help="Branch with the changes"),
    base: str | None = typer.Option(
        None,
        "--base",
        help="Branch to merge into (defaults to the default branch)",
    ),
    body: str = typer.Option("", "--body", help="Pull request description"),
    account: str | None = typer.Option(
        None,
        "--account",
        help="Owner login (defaults to GITHUB_USER)",
    ),
) -> None:
    """
    Open a pull request.

    Examples:
        treesync pr site --title "Preview changes" --head preview
    """

    async def operation(service: TreeSyncService) -> PullRequestInfo:
        return await service.create_pull_request(repo, title, body, head, base)

    info = run_with_service(ctx, "pr", operation, account)
    console.print(f"[green]✓[/green] Opened pull request #{info.number} ({info.state})")
    console.print(info.url)
