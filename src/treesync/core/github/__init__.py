"""
GitHub integration for treesync.

Async REST client for the Git Data API with uniform rate-limit handling.
"""

from treesync.core.github.client import GitHubClient
from treesync.core.github.models import (
    Credentials,
    PullRequestInfo,
    RemoteTree,
    RepoInfo,
    RepositoryData,
    TreeItem,
)
from treesync.core.github.ratelimit import RateLimitedExecutor, RetryConfig

__all__ = [
    "Credentials",
    "GitHubClient",
    "PullRequestInfo",
    "RateLimitedExecutor",
    "RemoteTree",
    "RepoInfo",
    "RepositoryData",
    "RetryConfig",
    "TreeItem",
]
