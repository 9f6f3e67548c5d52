"""
Shared plumbing for CLI commands: credentials, service construction and
running coroutines.
"""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from typing import TypeVar

import typer

from treesync.cli.errors import handle_error
from treesync.core.config import load_config
from treesync.core.github.models import Credentials
from treesync.core.sync.service import TreeSyncService

T = TypeVar("T")


def get_credentials(account: str | None = None) -> Credentials:
    """Credentials from the environment, with an optional account override."""
    credentials = Credentials.from_env()
    if account:
        credentials = credentials.model_copy(update={"account": account})
    return credentials


def open_service(credentials: Credentials) -> AbstractAsyncContextManager[TreeSyncService]:
    return TreeSyncService.connect(credentials, load_config())


def is_debug(ctx: typer.Context) -> bool:
    obj = ctx.find_root().obj
    return bool(obj.get("debug")) if isinstance(obj, dict) else False


def run_with_service(
    ctx: typer.Context,
    command_name: str,
    operation: Callable[[TreeSyncService], Awaitable[T]],
    account: str | None = None,
) -> T:
    """
    Open a service, run ``operation`` against it and map errors to exit codes.

    Raises:
        typer.Exit: On any failure, after printing it
    """

    async def _run() -> T:
        async with open_service(get_credentials(account)) as service:
            return await operation(service)

    try:
        return asyncio.run(_run())
    except KeyboardInterrupt:
        raise typer.Exit(130)
    except Exception as e:
        raise typer.Exit(handle_error(e, command_name, debug=is_debug(ctx)))
