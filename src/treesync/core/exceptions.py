"""
Custom exceptions for treesync.

This module defines the error taxonomy for the synchronization engine,
providing structured error handling with context preservation.

Exception Hierarchy:
    TreeSyncError (base)
    ├── MissingCredentialsError (token/account absent, no network call made)
    ├── RemoteError (remote interaction failed)
    │   ├── NotFoundError (repository/branch/ref absent when required)
    │   │   └── BranchNotFoundError (user-facing "branch does not exist")
    │   ├── RateLimitExceededError (retries exhausted)
    │   └── TransportError (any non-rate-limit HTTP or network error)
    └── PartialFailureError (remote objects created, a later step failed)

Example:
    >>> from treesync.core.exceptions import NotFoundError
    >>> try:
    ...     raise NotFoundError("Repository octo/site not found", status_code=404)
    ... except NotFoundError as e:
    ...     print(f"{e} ({e.context})")
"""

from __future__ import annotations


class TreeSyncError(Exception):
    """
    Base exception for all treesync errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        """
        Initialize a treesync error with message and context.

        Args:
            message: Human-readable error message
            **context: Additional context as keyword arguments
        """
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def step(self) -> str | None:
        """Orchestration step that failed, if known."""
        step = self.context.get("step")
        return str(step) if step is not None else None

    def with_step(self, step: str) -> TreeSyncError:
        """Record the orchestration step this error surfaced from."""
        self.context.setdefault("step", step)
        return self

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.step:
            return f"[{self.step}] {self.message}"
        return self.message


class MissingCredentialsError(TreeSyncError):
    """
    Raised when a required token or account identifier is absent.

    Always raised before any network call is attempted.
    """

    def __init__(self, field: str) -> None:
        super().__init__(f"GitHub {field} is required", field=field)
        self.field = field


class RemoteError(TreeSyncError):
    """
    Base exception for failures talking to the remote Git host.

    Attributes:
        status_code: HTTP status code, when the failure carried a response
    """

    def __init__(self, message: str, status_code: int | None = None, **context: object) -> None:
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, **context)
        self.status_code = status_code


class NotFoundError(RemoteError):
    """Raised when a repository, branch or ref is absent but must exist."""


class BranchNotFoundError(NotFoundError):
    """
    Raised when reading from a branch that does not exist.

    Kept distinct from transport failures so callers can show it verbatim.
    """

    def __init__(self, repository: str, branch: str) -> None:
        super().__init__(
            f"Branch '{branch}' does not exist in repository '{repository}'. "
            "Please check the branch name and try again.",
            status_code=404,
            repository=repository,
            branch=branch,
        )
        self.repository = repository
        self.branch = branch


class RateLimitExceededError(RemoteError):
    """
    Raised when the rate-limit retry budget is exhausted.

    Attributes:
        wait_hint: Last computed wait time in seconds (for caller telemetry)
        attempts: Number of attempts made before giving up
    """

    def __init__(
        self,
        message: str,
        *,
        wait_hint: float,
        attempts: int,
        status_code: int | None = None,
        **context: object,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            wait_hint=round(wait_hint, 3),
            attempts=attempts,
            **context,
        )
        self.wait_hint = wait_hint
        self.attempts = attempts


class TransportError(RemoteError):
    """
    Raised for any non-rate-limit HTTP error or network failure.

    The original httpx exception is preserved via ``__cause__``.
    """


class PartialFailureError(TreeSyncError):
    """
    Raised when remote objects were created but a later step failed.

    No rollback is attempted: uploaded blobs, trees and commits are
    content-addressed, so they are left orphaned and retrying the whole
    operation is safe.

    Attributes:
        cause: The underlying error that stopped the operation
        resource_url: URL of a resource that was created (e.g. a repository),
            for manual recovery
    """

    def __init__(
        self,
        message: str,
        *,
        step: str,
        cause: BaseException | None = None,
        resource_url: str | None = None,
        **context: object,
    ) -> None:
        if resource_url:
            context["resource_url"] = resource_url
        super().__init__(message, step=step, **context)
        self.cause = cause
        self.resource_url = resource_url


__all__ = [
    "TreeSyncError",
    "MissingCredentialsError",
    "RemoteError",
    "NotFoundError",
    "BranchNotFoundError",
    "RateLimitExceededError",
    "TransportError",
    "PartialFailureError",
]
