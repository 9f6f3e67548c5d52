"""
Standardized error handling and exit codes for the treesync CLI.
"""

import logging
import sys
import traceback
from enum import IntEnum

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from treesync.core.exceptions import (
    MissingCredentialsError,
    PartialFailureError,
    TreeSyncError,
)

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for treesync CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Remote or unexpected failure."""

    USER_ERROR = 2
    """Missing credentials or invalid input (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for CLI commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_missing_credentials_error(error: MissingCredentialsError) -> None:
    """Print error when the token or account is missing."""
    variable = "GITHUB_TOKEN" if error.field == "access token" else "GITHUB_USER"
    print_error(
        str(error),
        reason="treesync authenticates every request with a bearer token",
        solution=f"export {variable}=...  # or add it to .env",
    )


def handle_error(error: Exception, command_name: str, debug: bool = False) -> ExitCode:
    """
    Display an error and return the exit code for it.

    treesync errors are shown verbatim with their context (including the
    URL of any partially created resource); anything else is reported as
    unexpected.
    """
    if isinstance(error, MissingCredentialsError):
        print_missing_credentials_error(error)
        return ExitCode.USER_ERROR

    if isinstance(error, ValueError):
        print_error(str(error))
        return ExitCode.USER_ERROR

    if isinstance(error, OSError):
        print_error(
            f"Could not access {error.filename or 'the local filesystem'}",
            reason=error.strerror or str(error),
        )
        return ExitCode.GENERAL_ERROR

    error_text = Text()
    if isinstance(error, TreeSyncError):
        title = "[bold red]Partial failure[/bold red]" if isinstance(
            error, PartialFailureError
        ) else "[bold red]Error[/bold red]"
        error_text.append("Error: ", style="bold red")
        error_text.append(str(error))

        if error.context:
            error_text.append("\n\nContext:\n", style="dim")
            for key, value in error.context.items():
                error_text.append(f"  {key}: ", style="cyan")
                error_text.append(f"{value}\n", style="white")
    else:
        title = "[bold red]Unexpected Error[/bold red]"
        error_text.append("Unexpected error in ", style="bold red")
        error_text.append(command_name, style="bold yellow")
        error_text.append(": ", style="bold red")
        error_text.append(str(error))

    console.print()
    console.print(Panel(error_text, title=title, border_style="red", expand=False))

    if debug:
        console.print("\n[dim]Full traceback:[/dim]")
        console.print(traceback.format_exc())
    else:
        console.print("[dim]Run with --debug for full traceback[/dim]")

    return ExitCode.GENERAL_ERROR
