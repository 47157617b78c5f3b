"""
Git-specific exceptions.

Every failure of the repository access layer is raised as one of the
exceptions below. Transport failures are translated into the closest
entry and keep the underlying exception as ``cause``.
"""

from typing import Optional


class GitError(Exception):
    """Base exception for all Git-related errors."""

    def __init__(
        self,
        message: str,
        *,
        address: Optional[str] = None,
        repo_path: Optional[str] = None,
        cause: Optional[BaseException] = None,
        note: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.address = address
        self.repo_path = repo_path
        self.cause = cause
        self.note = note

    def __str__(self) -> str:
        parts = [self.message]
        if self.note:
            parts.append(f"({self.note})")
        if self.address:
            parts.append(f"address='{self.address}'")
        if self.repo_path:
            parts.append(f"path='{self.repo_path}'")
        return " ".join(parts)


class ValidationError(GitError):
    """Base class for address validation failures."""

    pass


class InvalidAddressError(ValidationError):
    """Raised when a repository address is empty or malformed."""

    pass


class UnsupportedSchemeError(ValidationError):
    """Raised when the address scheme is not in the allowed set."""

    pass


class UnauthorizedHostError(ValidationError):
    """Raised when the address host is not in the allowed set."""

    pass


class AuthenticationFailedError(GitError):
    """Raised when no credential could be produced or the remote rejected it."""

    pass


class NoAuthMethodError(GitError):
    """Raised when no authentication method applies to the address scheme."""

    pass


class NotARepositoryError(GitError):
    """Raised when the local path does not hold a valid Git repository."""

    pass


class RepositoryNotFoundError(GitError):
    """Raised when the remote repository does not exist or is not visible."""

    pass


class RepositoryEmptyError(GitError):
    """Raised when the remote repository has no commits."""

    pass


class RepositoryExistsError(GitError):
    """Raised when a clone target already holds files."""

    pass


class TimeoutExceededError(GitError):
    """Raised when an operation runs past its deadline."""

    pass


class CancelledError(GitError):
    """Raised when an operation is cancelled by the caller."""

    pass


class ReferenceNotFoundError(GitError):
    """Raised when a branch or tag cannot be resolved."""

    pass


class CommitNotFoundError(GitError):
    """Raised when a commit hash (full or abbreviated) does not resolve."""

    pass


class FileNotInCommitError(GitError):
    """Raised when a path is absent from a commit's tree."""

    pass


class CheckoutError(GitError):
    """Raised when checking out a branch or tag fails."""

    pass


class RemoteError(GitError):
    """Raised when the remote address of a repository cannot be read."""

    pass


class TransportError(GitError):
    """Raised for transport failures that match no more specific error."""

    pass
