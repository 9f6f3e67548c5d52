"""
Configuration data models for treesync.

These models define the structure of .treesync.json and
~/.config/treesync/config.json files, with validation via Pydantic.
"""

from pydantic import BaseModel, ConfigDict, Field


class GitHubSettings(BaseModel):
    """
    Remote Git host endpoint settings.
    """
    api_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the REST API"
    )
    web_url: str = Field(
        default="https://github.com",
        description="Base URL of the web UI (used to build result links)"
    )
    api_version: str = Field(
        default="2022-11-28",
        description="Value sent as X-GitHub-Api-Version"
    )
    timeout: float = Field(
        default=300.0,
        gt=0,
        description="Per-request timeout in seconds"
    )
    user_agent: str = Field(
        default="treesync",
        description="User-Agent header sent with every request"
    )
    default_branch: str = Field(
        default="main",
        min_length=1,
        description="Branch used for full-repository syncs and as the base for new branches"
    )


class RetrySettings(BaseModel):
    """
    Rate-limit retry behavior applied to every remote call.
    """
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Additional attempts after a rate-limited response"
    )
    base_delay: float = Field(
        default=2.0,
        ge=0.0,
        description="Backoff delay in seconds for the first retry"
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Exponential backoff multiplier"
    )
    reset_buffer: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds to wait past an advertised rate-limit reset"
    )
    jitter: bool = Field(
        default=False,
        description="Randomize backoff delays by ±20%"
    )


class BatchSettings(BaseModel):
    """
    Pacing for a batch of independent remote operations.
    """
    batch_size: int = Field(
        default=5,
        ge=1,
        description="Operations issued concurrently per batch"
    )
    intra_delay: float = Field(
        default=0.2,
        ge=0.0,
        description="Seconds each operation after the first waits before issuing"
    )
    inter_delay: float = Field(
        default=0.5,
        ge=0.0,
        description="Seconds to pause between batches"
    )


class RepositorySettings(BaseModel):
    """
    Defaults for repositories created by treesync.
    """
    private: bool = Field(
        default=True,
        description="Create repositories as private"
    )
    description_limit: int = Field(
        default=20,
        ge=0,
        description="Maximum description length sent to the host"
    )
    settle_delay: float = Field(
        default=1.0,
        ge=0.0,
        description="Seconds to wait after the initial commit before reporting the repository ready"
    )


class TreeSyncConfig(BaseModel):
    """
    Complete treesync configuration.

    Merged from defaults, user config, project config and environment.
    """
    model_config = ConfigDict(extra="ignore")

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    uploads: BatchSettings = Field(
        default_factory=lambda: BatchSettings(batch_size=5, intra_delay=0.2, inter_delay=0.5),
        description="Blob uploads for repository creation and full syncs"
    )
    branch_uploads: BatchSettings = Field(
        default_factory=lambda: BatchSettings(batch_size=20, intra_delay=0.2, inter_delay=0.2),
        description="Blob uploads for branch syncs"
    )
    downloads: BatchSettings = Field(
        default_factory=lambda: BatchSettings(batch_size=20, intra_delay=0.1, inter_delay=0.2),
        description="Blob downloads for inbound reads"
    )
    repository: RepositorySettings = Field(default_factory=RepositorySettings)
