"""
Layered .env loading for credentials and overrides.

treesync reads GITHUB_TOKEN, GITHUB_USER and the TREESYNC_* overrides from
the process environment. Before any command runs, the CLI seeds missing
variables from dotenv files, in increasing precedence:

1. ``$XDG_CONFIG_HOME/treesync/.env`` (per-user token)
2. ``<project>/.env`` then ``<project>/.env.local``

A variable exported in the shell is never replaced by a file value. A
project file may replace a value that only came from the user file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)

USER_ENV_NAME = ".env"
PROJECT_ENV_NAMES = (".env", ".env.local")


def read_env_file(path: Path) -> dict[str, str]:
    """Parse a dotenv file, dropping bare keys. Missing files read as empty."""
    if not path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if key and value is not None}


def default_user_env_paths() -> list[Path]:
    return [get_xdg_config_home() / "treesync" / USER_ENV_NAME]


def default_project_env_paths(project_dir: Path) -> list[Path]:
    return [project_dir / name for name in PROJECT_ENV_NAMES]


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, Path]:
    """
    Seed ``os.environ`` from user and project dotenv files.

    Args:
        project_dir: Directory holding the project env files (defaults to cwd)
        user_env_paths: Override the user env file locations
        project_env_paths: Override the project env file locations

    Returns:
        Mapping of each variable set by this call to the file it came from
    """
    project_dir = project_dir or Path.cwd()
    user_paths = default_user_env_paths() if user_env_paths is None else list(user_env_paths)
    project_paths = (
        default_project_env_paths(project_dir)
        if project_env_paths is None
        else list(project_env_paths)
    )

    shell_keys = set(os.environ)
    sources: dict[str, Path] = {}

    for layer, paths in (("user", user_paths), ("project", project_paths)):
        for path in paths:
            values = read_env_file(Path(path))
            if values:
                logger.debug("Loading %s env file %s", layer, path)
            for key, value in values.items():
                if key in shell_keys:
                    continue
                os.environ[key] = value
                sources[key] = Path(path)

    return sources
