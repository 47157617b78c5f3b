"""
Configuration of the repository access layer.
"""

from pydantic import BaseModel, Field, field_validator

from rulesync.git.validation import DEFAULT_HOSTS, DEFAULT_SCHEMES, ValidationPolicy

DEFAULT_CLONE_TIMEOUT = 5 * 60.0
DEFAULT_PULL_TIMEOUT = 2 * 60.0


class GitConfig(BaseModel):
    """
    Timeouts, address policy and retry settings for Git operations.

    Example:
        ```python
        config = GitConfig(allowed_hosts=[])     # any host
        client = GitClient(config)
        ```
    """

    model_config = {"extra": "forbid"}

    clone_timeout: float = Field(
        default=DEFAULT_CLONE_TIMEOUT, gt=0, description="Clone timeout in seconds"
    )
    pull_timeout: float = Field(
        default=DEFAULT_PULL_TIMEOUT, gt=0, description="Pull timeout in seconds"
    )
    allowed_schemes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCHEMES),
        min_length=1,
        description="Address schemes accepted by validation",
    )
    allowed_hosts: list[str] = Field(
        default_factory=lambda: list(DEFAULT_HOSTS),
        description="Hosts accepted by validation (empty = any host)",
    )
    default_branches: list[str] = Field(
        default_factory=lambda: ["main", "master"],
        description="Branch names that need no explicit checkout after clone",
    )
    remote_lookup_attempts: int = Field(
        default=3, ge=1, description="Attempts to read the origin URL before pull"
    )
    remote_lookup_delay: float = Field(
        default=0.01, ge=0, description="Delay between origin URL lookups in seconds"
    )

    @field_validator("allowed_schemes", "allowed_hosts")
    @classmethod
    def lowercase(cls, v: list[str]) -> list[str]:
        return [item.lower() for item in v]

    def policy(self) -> ValidationPolicy:
        """Build the validation policy for this configuration."""
        return ValidationPolicy(
            allowed_schemes=frozenset(self.allowed_schemes),
            allowed_hosts=frozenset(self.allowed_hosts),
        )
