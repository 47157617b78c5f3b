"""
High-level services built on the repository access layer.
"""

from rulesync.services.cache import RepositoryCache, cache_key
from rulesync.services.rules import RuleDocument, RuleFetcher, RuleNotFoundError

__all__ = [
    "RepositoryCache",
    "cache_key",
    "RuleDocument",
    "RuleFetcher",
    "RuleNotFoundError",
]
