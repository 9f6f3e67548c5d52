"""
treesync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import typer
from rich.console import Console

from treesync import __version__
from treesync.cli import repo, sync
from treesync.cli.errors import setup_logging
from treesync.core.config.env import load_layered_env

# Help panel names for command grouping
PANEL_SYNC = "Sync Files"
PANEL_REPO = "Repositories and Branches"

app = typer.Typer(
    name="treesync",
    help="Mirror local file sets onto GitHub branches as single commits",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    treesync - push a directory to GitHub as one commit.

    Credentials come from GITHUB_TOKEN and GITHUB_USER (or a .env file).

    Common Workflows:
        treesync create-repo site ./build     # New repository from a directory
        treesync push site ./build            # Replace the default branch
        treesync push site ./build -b draft   # Replace (or create) a branch
        treesync pr site -t "Draft" --head draft
        treesync pull site ./checkout         # Download a branch
    """
    load_layered_env()
    setup_logging(debug)
    ctx.obj = {"debug": debug}


# =============================================================================
# Sync Files
# =============================================================================

app.command(name="push", rich_help_panel=PANEL_SYNC)(sync.push)
app.command(name="pull", rich_help_panel=PANEL_SYNC)(sync.pull)


# =============================================================================
# Repositories and Branches
# =============================================================================

app.command(name="create-repo", rich_help_panel=PANEL_REPO)(repo.create_repo)
app.command(name="branch", rich_help_panel=PANEL_REPO)(repo.branch)
app.command(name="pr", rich_help_panel=PANEL_REPO)(repo.pr)


@app.command()
def version() -> None:
    """Show treesync version and exit."""
    console.print(f"treesync version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
