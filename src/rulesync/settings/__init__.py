"""
Settings and configuration for rulesync.

Example:
    ```python
    from rulesync.settings import RulesyncConfig, AuthSettings

    config = RulesyncConfig.from_file("~/.config/rulesync/config.yaml")
    print(config.git.allowed_hosts)

    # Secrets come from the environment (GITHUB_TOKEN, GIT_USERNAME, ...)
    auth = AuthSettings()
    ```
"""

from rulesync.git.auth import AuthSettings
from rulesync.git.config import GitConfig
from rulesync.settings.config import RulesyncConfig, default_cache_dir, load_config

__all__ = [
    "AuthSettings",
    "GitConfig",
    "RulesyncConfig",
    "default_cache_dir",
    "load_config",
]
