"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import TreeSyncConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: TreeSyncConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/treesync/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "treesync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .treesync.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".treesync.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 20}})
        {'a': 1, 'b': {'x': 10, 'y': 20}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    if not isinstance(result.get(section), dict):
        result[section] = {}
    else:
        result[section] = dict(result[section])
    result[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        TREESYNC_API_URL - overrides github.api_url
        TREESYNC_DEFAULT_BRANCH - overrides github.default_branch
        TREESYNC_TIMEOUT - overrides github.timeout
        TREESYNC_MAX_RETRIES - overrides retry.max_retries

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if api_url := os.environ.get("TREESYNC_API_URL"):
        _set(result, "github", "api_url", api_url)

    if branch := os.environ.get("TREESYNC_DEFAULT_BRANCH"):
        _set(result, "github", "default_branch", branch)

    if timeout_str := os.environ.get("TREESYNC_TIMEOUT"):
        try:
            _set(result, "github", "timeout", float(timeout_str))
        except ValueError:
            logger.warning("Invalid TREESYNC_TIMEOUT value '%s', ignoring", timeout_str)

    if retries_str := os.environ.get("TREESYNC_MAX_RETRIES"):
        try:
            retries = int(retries_str)
            if retries < 0:
                logger.warning("TREESYNC_MAX_RETRIES must be >= 0, got %d, ignoring", retries)
            else:
                _set(result, "retry", "max_retries", retries)
        except ValueError:
            logger.warning("Invalid TREESYNC_MAX_RETRIES value '%s', ignoring", retries_str)

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return TreeSyncConfig().model_dump()


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> TreeSyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (TREESYNC_*)
        2. Project config (.treesync.json)
        3. User config (~/.config/treesync/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .treesync.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated TreeSyncConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = TreeSyncConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
