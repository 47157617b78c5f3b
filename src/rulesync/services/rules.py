"""
Rule fetching from cached repositories.

A rule is a markdown file inside a rule repository. Rules are addressed
by their path relative to the repository root, without the ``.md``
extension (``python/style`` for ``python/style.md``).
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from rulesync.git import CommitInfo, FileNotInCommitError, GitClient, mask_credentials
from rulesync.services.cache import RepositoryCache

logger = logging.getLogger(__name__)

RULE_SUFFIX = ".md"
README_NAME = "readme.md"


class RuleNotFoundError(Exception):
    """Raised when a rule file does not exist in the repository."""

    def __init__(self, rule_path: str, source: str, commit: Optional[str] = None):
        self.rule_path = rule_path
        self.source = mask_credentials(source)
        self.commit = commit
        where = f" at commit {commit}" if commit else ""
        super().__init__(f"rule {rule_path!r} not found in {self.source}{where}")


class RuleDocument(BaseModel):
    """Raw content of a rule together with its commit information."""

    model_config = {"frozen": True}

    path: str = Field(description="Rule path without the .md extension")
    source: str = Field(description="Repository address")
    ref: str = Field(description="Branch or tag the rule was read from")
    content: str = Field(description="Raw markdown")
    commit: CommitInfo = Field(description="Commit the content belongs to")


def rule_file(rule_path: str) -> str:
    """Repository-relative file name of a rule."""
    rule_path = rule_path.strip("/")
    if rule_path.endswith(RULE_SUFFIX):
        return rule_path
    return rule_path + RULE_SUFFIX


class RuleFetcher:
    """
    Reads rules out of cached rule repositories.

    Example:
        ```python
        client = GitClient()
        fetcher = RuleFetcher(RepositoryCache(client), client)

        for name in fetcher.list_rules("https://github.com/org/rules.git", "main"):
            print(name)

        rule = fetcher.fetch_rule(
            "https://github.com/org/rules.git", "main", "python/style"
        )
        print(rule.commit.short_hash, rule.commit.date)
        ```
    """

    def __init__(self, cache: RepositoryCache, client: Optional[GitClient] = None):
        self.cache = cache
        self.client = client or cache.client

    def fetch_rule(self, source: str, ref: str, rule_path: str) -> RuleDocument:
        """
        Read a rule from the cached working tree.

        Raises:
            RuleNotFoundError: If the rule file doesn't exist
            GitError: If the repository cannot be fetched
        """
        logger.debug(f"Fetching rule {rule_path} from {mask_credentials(source)} ({ref})")

        repo_dir = self.cache.get_repository(source, ref)
        file_name = rule_file(rule_path)
        full_path = repo_dir / file_name

        if not full_path.is_file():
            raise RuleNotFoundError(rule_path, source)

        return RuleDocument(
            path=_rule_id(file_name),
            source=source,
            ref=ref,
            content=full_path.read_text(encoding="utf-8"),
            commit=self.client.file_commit_info(repo_dir, file_name),
        )

    def fetch_rule_at_commit(
        self, source: str, ref: str, rule_path: str, commit_hash: str
    ) -> RuleDocument:
        """
        Read a rule as it was at a commit.

        Args:
            source: Repository address
            ref: Branch or tag used to locate the cached clone
            rule_path: Rule path, with or without ``.md``
            commit_hash: Full or 7-character commit hash

        Raises:
            RuleNotFoundError: If the rule did not exist at that commit
            CommitNotFoundError: If the commit does not resolve
        """
        logger.debug(f"Fetching rule {rule_path} at commit {commit_hash}")

        repo_dir = self.cache.get_repository(source, ref)
        file_name = rule_file(rule_path)

        try:
            data = self.client.file_at_commit(repo_dir, file_name, commit_hash)
        except FileNotInCommitError as e:
            raise RuleNotFoundError(rule_path, source, commit=commit_hash) from e

        return RuleDocument(
            path=_rule_id(file_name),
            source=source,
            ref=ref,
            content=data.decode("utf-8"),
            commit=self.client.commit_info(repo_dir, commit_hash),
        )

    def list_rules(self, source: str, ref: str) -> list[str]:
        """
        List every rule in a repository.

        README files are skipped. Paths are ``/``-separated and returned
        without the extension, sorted.
        """
        repo_dir = self.cache.get_repository(source, ref)

        rules = []
        for path in repo_dir.rglob(f"*{RULE_SUFFIX}"):
            rel = path.relative_to(repo_dir)
            if ".git" in rel.parts or not path.is_file():
                continue
            if path.name.lower() == README_NAME:
                continue
            rules.append(_rule_id(rel.as_posix()))

        logger.debug(f"Found {len(rules)} rules in {repo_dir}")
        return sorted(rules)


def _rule_id(file_name: str) -> str:
    return Path(file_name).as_posix()[: -len(RULE_SUFFIX)]
