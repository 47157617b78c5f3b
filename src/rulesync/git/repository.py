"""
Git repository client.

``GitClient`` is the entry point of the repository access layer. It wraps
GitPython for two kinds of work:

* network operations (``clone``, ``pull``) that validate the address,
  negotiate credentials, run under a deadline and clean up after
  themselves;
* read-only history queries (``latest_commit_hash``, ``commit_info``,
  ``file_at_commit``, ``file_commit_info``) that never touch the working
  tree.

The client keeps no per-operation state, so one instance can serve many
concurrent operations on distinct paths.
"""

import logging
import shutil
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import BadName, BadObject
from git.objects import Commit as GitCommit
from git.refs import Reference

from rulesync.git.auth import AuthNegotiator
from rulesync.git.config import GitConfig
from rulesync.git.context import OperationContext
from rulesync.git.exceptions import (
    CheckoutError,
    CommitNotFoundError,
    FileNotInCommitError,
    GitError,
    NotARepositoryError,
    ReferenceNotFoundError,
    RemoteError,
    RepositoryEmptyError,
    RepositoryExistsError,
)
from rulesync.git.models import CommitInfo, ParsedAddress
from rulesync.git.progress import ProgressHandler, make_adapter
from rulesync.git.transport import check_context, classify_error, git_command, run_git
from rulesync.git.validation import ValidationPolicy, mask_credentials

logger = logging.getLogger(__name__)

SHORT_HASH_LENGTH = 7
FULL_HASH_LENGTH = 40
_HEX = set("0123456789abcdef")

PathLike = Union[str, Path]


class GitClient:
    """
    Secure clone/pull and history queries over local repositories.

    Example:
        ```python
        client = GitClient()

        client.clone(
            "https://github.com/org/rules.git",
            "/tmp/rules",
            branch="main",
            depth=1,
        )

        head = client.latest_commit_hash("/tmp/rules")
        info = client.commit_info("/tmp/rules", head[:7])
        text = client.file_at_commit("/tmp/rules", "python/style.md", info.hash)
        ```
    """

    def __init__(
        self,
        config: Optional[GitConfig] = None,
        *,
        policy: Optional[ValidationPolicy] = None,
        auth: Optional[AuthNegotiator] = None,
    ):
        """
        Args:
            config: Timeouts and policy settings (default: GitConfig())
            policy: Address policy; overrides the one built from config
            auth: Credential negotiator (default: reads the environment)
        """
        self.config = config or GitConfig()
        self.policy = policy or self.config.policy()
        self.auth = auth or AuthNegotiator()

    # =========================================================================
    # Validation
    # =========================================================================

    def validate_url(self, address: str) -> ParsedAddress:
        """
        Check an address against the policy.

        Raises:
            InvalidAddressError, UnsupportedSchemeError, UnauthorizedHostError
        """
        return self.policy.validate(address)

    # =========================================================================
    # Clone and pull
    # =========================================================================

    def clone(
        self,
        address: str,
        path: PathLike,
        *,
        branch: Optional[str] = None,
        single_branch: bool = False,
        depth: Optional[int] = None,
        timeout: Optional[float] = None,
        progress: Optional[ProgressHandler] = None,
        context: Optional[OperationContext] = None,
    ) -> Path:
        """
        Clone a repository.

        On any failure the target directory is removed before the error is
        raised, so a failed clone leaves nothing behind.

        Args:
            address: Remote address (https or ssh)
            path: Target directory (must be absent or empty)
            branch: Branch or tag to check out (default: remote HEAD)
            single_branch: Fetch only the requested branch
            depth: Shallow clone depth
            timeout: Seconds; ignored when ``context`` carries a deadline
            progress: Progress observer
            context: Deadline/cancellation supplied by the caller

        Returns:
            Path of the new repository

        Raises:
            ValidationError subclasses: before any side effect
            NoAuthMethodError, AuthenticationFailedError
            RepositoryNotFoundError, RepositoryEmptyError, RepositoryExistsError
            TimeoutExceededError, CancelledError, TransportError
        """
        parsed = self.validate_url(address)
        path = Path(path).absolute()
        safe_address = mask_credentials(address)

        if path.exists() and (not path.is_dir() or any(path.iterdir())):
            raise RepositoryExistsError(
                "clone target is not empty", address=safe_address, repo_path=str(path)
            )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise GitError(
                f"failed to create parent directory {path.parent}: {e}",
                address=safe_address,
                repo_path=str(path),
                cause=e,
            ) from e

        credential = self.auth.resolve(address)

        base = context or OperationContext.background()
        ctx = base.with_timeout(timeout if timeout is not None else self.config.clone_timeout)

        ref = self._explicit_ref(branch)
        args = ["clone", "--progress"]
        if ref:
            args += ["--branch", ref]
        if single_branch:
            args.append("--single-branch")
        elif depth:
            args.append("--no-single-branch")
        if depth:
            args += ["--depth", str(depth)]
        args += ["--", address, str(path)]

        logger.info(f"Cloning repository: {safe_address} -> {path}")

        succeeded = False
        try:
            check_context(ctx, "clone", address=safe_address, repo_path=str(path))
            run_git(
                git_command(*args),
                cwd=path.parent,
                env=credential.to_env(),
                context=ctx,
                progress=make_adapter(progress),
            )
            self._ensure_not_empty(path, safe_address)
            if ref:
                self._checkout_after_clone(path, ref)
            succeeded = True
        except Exception as e:
            error = classify_error(
                e,
                operation="clone",
                address=safe_address,
                repo_path=str(path),
                context=ctx,
                ssh=parsed.is_ssh,
            )
            if progress:
                progress.on_error(error)
            if error is e:
                raise
            raise error from e
        finally:
            if not succeeded:
                self._remove_partial(path)

        if progress:
            progress.on_complete()
        return path

    def pull(
        self,
        path: PathLike,
        *,
        branch: Optional[str] = None,
        timeout: Optional[float] = None,
        progress: Optional[ProgressHandler] = None,
        context: Optional[OperationContext] = None,
    ) -> None:
        """
        Fast-forward an existing repository from its origin.

        "Already up to date" is success.

        Args:
            path: Local repository
            branch: Branch to check out before pulling
            timeout: Seconds; ignored when ``context`` carries a deadline
            progress: Progress observer
            context: Deadline/cancellation supplied by the caller

        Raises:
            NotARepositoryError, RemoteError, ValidationError subclasses,
            CheckoutError, AuthenticationFailedError, TimeoutExceededError,
            CancelledError, TransportError
        """
        path = Path(path)
        address = self.get_remote_url(path)
        parsed = self.validate_url(address)
        safe_address = mask_credentials(address)
        credential = self.auth.resolve(address)

        base = context or OperationContext.background()
        ctx = base.with_timeout(timeout if timeout is not None else self.config.pull_timeout)

        if branch:
            with self._open(path) as repo:
                self._checkout_ref(repo, branch)

        logger.info(f"Pulling updates: {path} <- {safe_address}")

        try:
            check_context(ctx, "pull", address=safe_address, repo_path=str(path))
            run_git(
                git_command("pull", "--progress", "--ff-only"),
                cwd=path,
                env=credential.to_env(),
                context=ctx,
                progress=make_adapter(progress),
            )
        except Exception as e:
            error = classify_error(
                e,
                operation="pull",
                address=safe_address,
                repo_path=str(path),
                context=ctx,
                ssh=parsed.is_ssh,
            )
            if progress:
                progress.on_error(error)
            if error is e:
                raise
            raise error from e

        if progress:
            progress.on_complete()

    def _explicit_ref(self, branch: Optional[str]) -> Optional[str]:
        if not branch or branch in self.config.default_branches:
            return None
        return branch

    def _ensure_not_empty(self, path: Path, address: str) -> None:
        with self._open(path) as repo:
            if not repo.head.is_valid():
                raise RepositoryEmptyError(
                    "clone failed: repository is empty", address=address, repo_path=str(path)
                )

    def _checkout_after_clone(self, path: Path, ref: str) -> None:
        # lenient: the clone already materialised the ref
        try:
            with self._open(path) as repo:
                self._checkout_ref(repo, ref)
        except CheckoutError as e:
            logger.debug(f"Post-clone checkout of {ref!r} failed: {e}")

    def _checkout_ref(self, repo: Repo, ref: str) -> None:
        """Check out ``ref`` as a branch, falling back to a tag."""
        try:
            repo.git.checkout(ref)
            return
        except GitCommandError as e:
            logger.debug(f"Checkout of branch {ref!r} failed, trying tag: {e.stderr}")

        try:
            repo.git.checkout(f"tags/{ref}")
        except GitCommandError as e:
            raise CheckoutError(
                f"failed to check out branch or tag {ref!r}",
                repo_path=str(repo.working_tree_dir),
                cause=e,
            ) from e

    def _remove_partial(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Failed to clean up failed clone directory {path}: {e}")

    # =========================================================================
    # Repository info
    # =========================================================================

    def is_valid_repository(self, path: PathLike) -> bool:
        """Check if ``path`` holds a Git repository."""
        try:
            with self._open(Path(path)):
                return True
        except NotARepositoryError:
            return False

    def get_remote_url(self, path: PathLike) -> str:
        """
        Get the URL of the ``origin`` remote.

        The lookup is retried a few times with a short delay to ride out
        concurrent writes to the repository config.

        Raises:
            NotARepositoryError: If path is not a repository
            RemoteError: If origin is missing or has no URL
        """
        path = Path(path)
        attempts = self.config.remote_lookup_attempts
        last_error: Optional[Exception] = None

        with self._open(path) as repo:
            for attempt in range(attempts):
                try:
                    urls = list(repo.remote("origin").urls)
                except (ValueError, GitCommandError) as e:
                    last_error = e
                    if attempt < attempts - 1:
                        time.sleep(self.config.remote_lookup_delay)
                    continue
                if not urls:
                    raise RemoteError("no URLs configured for origin remote", repo_path=str(path))
                return urls[0]

        raise RemoteError(
            f"failed to get origin remote after {attempts} attempts",
            repo_path=str(path),
            cause=last_error,
        ) from last_error

    # =========================================================================
    # History queries (read-only)
    # =========================================================================

    def latest_commit_hash(self, path: PathLike, ref: str = "") -> str:
        """
        Get the commit a branch, tag or HEAD points to.

        Args:
            path: Local repository
            ref: Branch or tag name; empty for HEAD

        Returns:
            Full commit hash

        Raises:
            ReferenceNotFoundError: If the reference does not resolve
        """
        with self._open(Path(path)) as repo:
            return self._resolve_ref(repo, ref).hexsha

    def commit_info(self, path: PathLike, commit_hash: str) -> CommitInfo:
        """
        Get hash and date of a commit given its full or 7-character hash.

        Raises:
            CommitNotFoundError: If no commit matches
        """
        with self._open(Path(path)) as repo:
            return CommitInfo.from_commit(self._resolve_commit(repo, commit_hash))

    def file_at_commit(self, path: PathLike, file_path: str, commit_hash: str) -> bytes:
        """
        Read a file as it was at a commit, without touching the working tree.

        Args:
            path: Local repository
            file_path: Path relative to the repository root
            commit_hash: Full or 7-character commit hash

        Returns:
            File content

        Raises:
            CommitNotFoundError: If the commit does not resolve
            FileNotInCommitError: If the commit's tree has no such file
        """
        rel_path = _normalize_path(file_path)
        if not rel_path:
            raise FileNotInCommitError("empty file path", repo_path=str(path))

        with self._open(Path(path)) as repo:
            commit = self._resolve_commit(repo, commit_hash)
            try:
                blob = commit.tree / rel_path
            except KeyError as e:
                raise FileNotInCommitError(
                    f"file {file_path!r} not found at commit {commit.hexsha}",
                    repo_path=str(path),
                    cause=e,
                ) from e

            if blob.type != "blob":
                raise FileNotInCommitError(
                    f"{file_path!r} is not a file at commit {commit.hexsha}",
                    repo_path=str(path),
                )
            return blob.data_stream.read()

    def file_commit_info(self, path: PathLike, file_path: str, ref: str = "") -> CommitInfo:
        """
        Get the most recent commit touching ``file_path`` on ``ref``.

        Falls back to the tip of ``ref`` when no commit touches the path.

        Raises:
            ReferenceNotFoundError: If the reference does not resolve
        """
        rel_path = _normalize_path(file_path)

        with self._open(Path(path)) as repo:
            tip = self._resolve_ref(repo, ref)
            latest = next(repo.iter_commits(tip.hexsha, paths=rel_path, max_count=1), None)
            return CommitInfo.from_commit(latest or tip)

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _open(self, path: Path) -> Iterator[Repo]:
        try:
            repo = Repo(path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotARepositoryError(
                f"not a git repository: {path}", repo_path=str(path), cause=e
            ) from e
        try:
            yield repo
        finally:
            repo.close()

    def _resolve_ref(self, repo: Repo, ref: str) -> GitCommit:
        if not ref:
            try:
                return repo.head.commit
            except ValueError as e:
                raise ReferenceNotFoundError(
                    "failed to resolve HEAD", repo_path=str(repo.working_tree_dir), cause=e
                ) from e

        for ref_path in (f"refs/heads/{ref}", f"refs/remotes/origin/{ref}", f"refs/tags/{ref}"):
            candidate = Reference(repo, ref_path)
            if candidate.is_valid():
                return candidate.commit

        raise ReferenceNotFoundError(
            f"failed to find branch or tag {ref!r}", repo_path=str(repo.working_tree_dir)
        )

    def _resolve_commit(self, repo: Repo, commit_hash: str) -> GitCommit:
        value = (commit_hash or "").strip().lower()
        repo_path = str(repo.working_tree_dir)

        if len(value) == SHORT_HASH_LENGTH and set(value) <= _HEX:
            # first match wins; seven hex digits are unique in practice
            for commit in repo.iter_commits("--all"):
                if commit.hexsha.startswith(value):
                    return commit
            raise CommitNotFoundError(
                f"no commit matches short hash {commit_hash!r}", repo_path=repo_path
            )

        if len(value) != FULL_HASH_LENGTH or not set(value) <= _HEX:
            raise CommitNotFoundError(f"invalid commit hash {commit_hash!r}", repo_path=repo_path)

        try:
            obj = repo.rev_parse(value)
        except (BadName, BadObject, ValueError) as e:
            raise CommitNotFoundError(
                f"commit {commit_hash} not found", repo_path=repo_path, cause=e
            ) from e

        if obj.type != "commit":
            raise CommitNotFoundError(f"{commit_hash} is not a commit", repo_path=repo_path)
        return obj


def _normalize_path(file_path: str) -> str:
    path = file_path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")
