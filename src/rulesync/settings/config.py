"""
rulesync configuration.

This module provides the configuration file format of the tool: Git
operation settings and the location of the repository cache.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from rulesync.git.config import GitConfig


def default_cache_dir() -> Path:
    """Shared cache directory under the system temp dir."""
    return Path(tempfile.gettempdir()) / "rulesync"


class RulesyncConfig(BaseModel):
    """
    Complete rulesync configuration.

    Example:
        ```python
        config = RulesyncConfig(
            git=GitConfig(clone_timeout=60, allowed_hosts=[]),
            cache_dir="~/.cache/rulesync",
        )

        # Load from file
        config = RulesyncConfig.from_file("~/.config/rulesync/config.yaml")
        ```
    """

    model_config = {"extra": "forbid"}

    git: GitConfig = Field(
        default_factory=GitConfig,
        description="Git operation settings"
    )
    cache_dir: Path = Field(
        default_factory=default_cache_dir,
        description="Directory holding cached repository clones"
    )

    @field_validator("cache_dir")
    @classmethod
    def expand_cache_dir(cls, v: Path) -> Path:
        """Expand ~ in the cache directory."""
        return Path(v).expanduser()

    def __str__(self) -> str:
        return (
            f"RulesyncConfig(cache_dir={self.cache_dir}, "
            f"hosts={self.git.allowed_hosts or 'any'})"
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "RulesyncConfig":
        """
        Load configuration from a YAML or JSON file.

        File format (YAML):
            ```yaml
            cache_dir: ~/.cache/rulesync

            git:
              clone_timeout: 300
              pull_timeout: 120
              allowed_schemes: [https, ssh]
              allowed_hosts: [github.com, gitlab.example.com]
            ```

        Args:
            path: Path to configuration file

        Returns:
            Loaded RulesyncConfig instance

        Raises:
            FileNotFoundError: If the config file doesn't exist
        """
        path = Path(path).expanduser().resolve()

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text()

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError:
                data = json.loads(content)

        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "RulesyncConfig":
        """Create configuration from a dictionary."""
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = "RULESYNC_") -> "RulesyncConfig":
        """
        Load configuration from environment variables.

        Environment variables:
            RULESYNC_CACHE_DIR - Cache directory
            RULESYNC_CLONE_TIMEOUT - Clone timeout in seconds
            RULESYNC_PULL_TIMEOUT - Pull timeout in seconds
            RULESYNC_ALLOWED_SCHEMES - Comma-separated schemes
            RULESYNC_ALLOWED_HOSTS - Comma-separated hosts ("*" = any host)

        Args:
            prefix: Environment variable prefix

        Returns:
            RulesyncConfig instance
        """
        git_data: dict = {}

        clone_timeout = os.environ.get(f"{prefix}CLONE_TIMEOUT")
        if clone_timeout:
            git_data["clone_timeout"] = float(clone_timeout)

        pull_timeout = os.environ.get(f"{prefix}PULL_TIMEOUT")
        if pull_timeout:
            git_data["pull_timeout"] = float(pull_timeout)

        schemes = os.environ.get(f"{prefix}ALLOWED_SCHEMES")
        if schemes:
            git_data["allowed_schemes"] = _split_list(schemes)

        hosts = os.environ.get(f"{prefix}ALLOWED_HOSTS")
        if hosts is not None:
            git_data["allowed_hosts"] = [] if hosts.strip() == "*" else _split_list(hosts)

        data: dict = {"git": GitConfig(**git_data)}
        cache_dir = os.environ.get(f"{prefix}CACHE_DIR")
        if cache_dir:
            data["cache_dir"] = cache_dir

        return cls(**data)


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(path: Optional[Union[str, Path]] = None) -> RulesyncConfig:
    """Load from ``path`` when given, otherwise from the environment."""
    if path:
        return RulesyncConfig.from_file(path)
    return RulesyncConfig.from_env()
