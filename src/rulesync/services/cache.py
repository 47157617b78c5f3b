"""
Repository cache.

Remote rule repositories are cloned once into a shared cache directory
and reused across invocations. Directory names are human-readable and
derived from the address and ref:

    <cache_dir>/
    ├── github.com_org_rules-main/
    └── gitlab.com_team_guides-v1.2/
"""

import logging
import re
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from rulesync.git import GitClient, GitError, mask_credentials, strip_credentials
from rulesync.settings.config import default_cache_dir

logger = logging.getLogger(__name__)

_SCP_ADDRESS = re.compile(r"^git@([^:]+):(.+)$")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def cache_key(address: str, ref: str) -> str:
    """
    Build the cache directory name for ``address`` at ``ref``.

    ``git@github.com:org/rules.git`` and ``https://github.com/org/rules.git``
    both map to ``github.com_org_rules-<ref>``. Credentials embedded in the
    address never end up in the key.
    """
    match = _SCP_ADDRESS.match(address)
    if match:
        host, path = match.groups()
        return f"{host}_{_flatten(path)}-{ref}"

    address = strip_credentials(address)
    parts = urlsplit(address)
    if parts.scheme and parts.netloc:
        return f"{parts.netloc}_{_flatten(parts.path)}-{ref}"

    return f"{_UNSAFE_CHARS.sub('_', address)}-{ref}"


def _flatten(path: str) -> str:
    path = path.lstrip("/")
    if path.endswith(".git"):
        path = path[:-4]
    return path.replace("/", "_")


class RepositoryCache:
    """
    Cross-session cache of cloned repositories.

    Example:
        ```python
        cache = RepositoryCache(GitClient())

        # Clone on first use, reuse afterwards
        path = cache.get_repository("https://github.com/org/rules.git", "main")

        # Pull before returning; a failed pull keeps the cached copy
        path = cache.get_repository(
            "https://github.com/org/rules.git", "main", update=True
        )
        ```
    """

    def __init__(self, client: GitClient, base_dir: Optional[Path] = None):
        self.client = client
        self.base_dir = Path(base_dir) if base_dir else default_cache_dir()

    def path_for(self, address: str, ref: str) -> Path:
        """Cache location of ``address`` at ``ref``."""
        return self.base_dir / cache_key(address, ref)

    def is_cached(self, address: str, ref: str) -> bool:
        """Check if a usable clone of ``address`` at ``ref`` exists."""
        return (self.path_for(address, ref) / ".git").is_dir()

    def get_repository(self, address: str, ref: str, update: bool = False) -> Path:
        """
        Get the local path of a cached repository, cloning it when missing.

        Args:
            address: Remote address
            ref: Branch or tag
            update: Pull before returning when the repository is cached

        Returns:
            Path of the cached working tree

        Raises:
            GitError: If the clone fails
        """
        path = self.path_for(address, ref)

        if self.is_cached(address, ref):
            if update:
                logger.debug(f"Updating cached repository: {path}")
                try:
                    self.client.pull(path, branch=ref or None)
                except GitError as e:
                    logger.warning(f"Failed to pull updates, using cached version: {path}: {e}")
            else:
                logger.debug(f"Using cached repository: {path}")
            return path

        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Cloning repository to cache: {mask_credentials(address)} ({ref}) -> {path}")
        self.client.clone(address, path, branch=ref or None)
        return path
